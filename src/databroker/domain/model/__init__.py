"""Public domain model surface."""

from __future__ import annotations

from databroker.domain.model.catalog import (
    Action,
    CatalogRecord,
    ConnectorContext,
    Delete,
    Document,
    OperationEntry,
    Page,
    Upsert,
    action_from_payload,
)
from databroker.domain.model.enums import ActionKind, SessionMode
from databroker.domain.model.policy import Policy, PolicyScope
from databroker.domain.model.registry import Connector, Entity, SessionHandle, utcnow

__all__ = [  # noqa: RUF022
    # registry
    "Entity",
    "Connector",
    "SessionHandle",
    "utcnow",
    # catalog
    "Action",
    "Upsert",
    "Delete",
    "action_from_payload",
    "OperationEntry",
    "CatalogRecord",
    "Document",
    "Page",
    "ConnectorContext",
    # policy
    "Policy",
    "PolicyScope",
    # enums
    "ActionKind",
    "SessionMode",
]
