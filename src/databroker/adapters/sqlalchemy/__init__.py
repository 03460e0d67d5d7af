"""SQLAlchemy adapter package for the data broker."""

from __future__ import annotations

from .engine import create_broker_engine
from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCatalogRepository,
    SqlAlchemyConnectorRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyOperationLogRepository,
    SqlAlchemyPolicyRepository,
)
from .unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup

__all__ = [
    "SqlAlchemyCatalogRepository",
    "SqlAlchemyConnectorRepository",
    "SqlAlchemyEntityRepository",
    "SqlAlchemyOperationLogRepository",
    "SqlAlchemyPolicyRepository",
    "SqlAlchemyUnitOfWork",
    "create_all_tables",
    "create_broker_engine",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
