"""Initial broker schema: registry, operation log and catalog.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

from databroker.adapters.sqlalchemy.mappings import UTCDateTime

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

_SESSION_MODES = ("stream", "accrue", "replace")
_ACTIONS = ("upsert", "delete")


def upgrade() -> None:
    op.create_table(
        "entity",
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("schema", sa.JSON(), nullable=False),
        sa.Column("timeseries", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("slug", name="pk_entity"),
    )
    op.create_table(
        "connector",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("entity_slug", sa.String(255), nullable=False),
        sa.Column("is_live", sa.Boolean(), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=True),
        sa.Column(
            "session_mode",
            sa.Enum(*_SESSION_MODES, name="sessionmode", native_enum=False),
            nullable=True,
        ),
        sa.Column("session_started", UTCDateTime(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["entity_slug"],
            ["entity.slug"],
            name="fk_connector_entity_slug_entity",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_connector"),
        sa.UniqueConstraint("entity_slug", "slug", name="uq_connector_entity_slug"),
    )
    op.create_table(
        "policy",
        sa.Column("slug", sa.String(255), nullable=False),
        sa.Column("segment_query", sa.JSON(), nullable=False),
        sa.Column("field_masks", sa.JSON(), nullable=False),
        sa.Column("connector_override", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("slug", name="pk_policy"),
    )
    op.create_table(
        "operation",
        sa.Column("sequence", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connector_id", sa.String(64), nullable=False),
        sa.Column("session_id", sa.String(64), nullable=False),
        sa.Column("public_id", sa.String(64), nullable=False),
        sa.Column("vendor_id", sa.String(255), nullable=False),
        sa.Column("action", sa.Enum(*_ACTIONS, name="actionkind", native_enum=False), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["connector_id"],
            ["connector.id"],
            name="fk_operation_connector_id_connector",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("sequence", name="pk_operation"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "ix_operation_connector_session", "operation", ["connector_id", "session_id"]
    )
    op.create_table(
        "catalog",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("connector_id", sa.String(64), nullable=False),
        sa.Column("public_id", sa.String(64), nullable=False),
        sa.Column("vendor_id", sa.String(255), nullable=False),
        sa.Column("document", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["connector_id"],
            ["connector.id"],
            name="fk_catalog_connector_id_connector",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_catalog"),
        sa.UniqueConstraint("connector_id", "vendor_id", name="uq_catalog_connector_id"),
        sa.UniqueConstraint("public_id", name="uq_catalog_public_id"),
        sqlite_autoincrement=True,
    )


def downgrade() -> None:
    op.drop_table("catalog")
    op.drop_index("ix_operation_connector_session", table_name="operation")
    op.drop_table("operation")
    op.drop_table("policy")
    op.drop_table("connector")
    op.drop_table("entity")
