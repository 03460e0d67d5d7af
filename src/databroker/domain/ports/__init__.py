"""Domain port definitions for adapters."""

from __future__ import annotations

from .collaborators import PolicyCache, PolicyProvider, RecordValidator
from .persistence import (
    CatalogRepository,
    ConnectorRepository,
    EntityRepository,
    OperationLogRepository,
    PolicyRepository,
    Repository,
)
from .unit_of_work import (
    BrokerRepositories,
    BrokerUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "BrokerRepositories",
    "BrokerUnitOfWork",
    "CatalogRepository",
    "ConnectorRepository",
    "EntityRepository",
    "OperationLogRepository",
    "PolicyCache",
    "PolicyProvider",
    "PolicyRepository",
    "RecordValidator",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
]
