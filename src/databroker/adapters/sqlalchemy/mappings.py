"""SQLAlchemy mapping metadata for the broker's registry, log and catalog."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers

from databroker.domain.model import ActionKind, Connector, Entity, Policy, SessionMode, utcnow

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

HASH_LENGTH = 64


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Registry tables -------------------------------------------------------------

entity_table = Table(
    "entity",
    mapper_registry.metadata,
    Column("slug", String(255), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("schema", JSON, nullable=False, default=dict),
    Column("timeseries", JSON, nullable=False, default=dict),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

connector_table = Table(
    "connector",
    mapper_registry.metadata,
    Column("id", String(HASH_LENGTH), primary_key=True),
    Column("slug", String(255), nullable=False),
    Column(
        "entity_slug",
        String(255),
        ForeignKey("entity.slug", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("is_live", Boolean, nullable=False, default=False),
    Column("session_id", String(64), nullable=True),
    Column(
        "session_mode",
        Enum(SessionMode, native_enum=False, values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=True,
    ),
    Column("session_started", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    UniqueConstraint("entity_slug", "slug"),
)

policy_table = Table(
    "policy",
    mapper_registry.metadata,
    Column("slug", String(255), primary_key=True),
    Column("segment_query", JSON, nullable=False, default=dict),
    Column("field_masks", JSON, nullable=False, default=list),
    Column("connector_override", JSON, nullable=False, default=list),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
)

# Operation log and catalog (Core only) ---------------------------------------

operation_table = Table(
    "operation",
    mapper_registry.metadata,
    Column("sequence", Integer, primary_key=True, autoincrement=True),
    Column(
        "connector_id",
        String(HASH_LENGTH),
        ForeignKey("connector.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("session_id", String(64), nullable=False),
    Column("public_id", String(HASH_LENGTH), nullable=False),
    Column("vendor_id", String(255), nullable=False),
    Column(
        "action",
        Enum(ActionKind, native_enum=False, values_callable=lambda kinds: [k.value for k in kinds]),
        nullable=False,
    ),
    Column("payload", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Index("ix_operation_connector_session", "connector_id", "session_id"),
    sqlite_autoincrement=True,
)

catalog_table = Table(
    "catalog",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "connector_id",
        String(HASH_LENGTH),
        ForeignKey("connector.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("public_id", String(HASH_LENGTH), nullable=False, unique=True),
    Column("vendor_id", String(255), nullable=False),
    Column("document", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False, default=utcnow),
    Column("updated_at", UTCDateTime(), nullable=False, default=utcnow),
    UniqueConstraint("connector_id", "vendor_id"),
    sqlite_autoincrement=True,
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the registry aggregates."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Entity,
        entity_table,
        exclude_properties=["created_at"],
    )
    mapper_registry.map_imperatively(
        Connector,
        connector_table,
        exclude_properties=["created_at"],
    )
    mapper_registry.map_imperatively(
        Policy,
        policy_table,
        exclude_properties=["created_at"],
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
