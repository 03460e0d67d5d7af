"""Catalog records, operation-log entries and the actions they carry."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from databroker.domain.model.enums import ActionKind

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime


type Document = dict[str, Any]


@dataclass(frozen=True, slots=True)
class Upsert:
    """Insert or replace the record identified by ``vendor_id``."""

    vendor_id: str
    document: Document

    @property
    def kind(self) -> ActionKind:
        return ActionKind.UPSERT

    @property
    def payload(self) -> Document:
        return {"id": self.vendor_id, **self.document}


@dataclass(frozen=True, slots=True)
class Delete:
    """Remove the record identified by ``vendor_id`` (absent records are fine)."""

    vendor_id: str

    @property
    def kind(self) -> ActionKind:
        return ActionKind.DELETE

    @property
    def payload(self) -> Document:
        return {"id": self.vendor_id}


type Action = Upsert | Delete


def action_from_payload(kind: ActionKind, payload: Document) -> Action:
    """Rebuild an action from its persisted log form."""

    vendor_id = str(payload["id"])
    match kind:
        case ActionKind.UPSERT:
            document = {key: value for key, value in payload.items() if key != "id"}
            return Upsert(vendor_id=vendor_id, document=document)
        case ActionKind.DELETE:
            return Delete(vendor_id=vendor_id)


@dataclass(frozen=True, slots=True)
class OperationEntry:
    """One buffered mutation; ``sequence`` fixes its replay position."""

    connector_id: str
    session_id: str
    sequence: int
    public_id: str
    action: Action


@dataclass(frozen=True, slots=True, kw_only=True)
class CatalogRecord:
    connector_id: str
    public_id: str
    vendor_id: str
    document: Document
    created_at: datetime | None = None
    updated_at: datetime | None = None
    entity_type: str | None = None

    @property
    def name(self) -> str | None:
        name = self.document.get("name")
        return name if isinstance(name, str) else None


@dataclass(frozen=True, slots=True)
class Page:
    """A window over an ordered result set."""

    offset: int = 0
    limit: int | None = None

    def resolve(self, *, default: int, maximum: int) -> Page:
        limit = default if self.limit is None else self.limit
        return Page(offset=max(self.offset, 0), limit=max(min(limit, maximum), 0))


@dataclass(frozen=True, slots=True)
class ConnectorContext:
    """Connector ids whose records are visible even when the connector is not live."""

    connector_ids: tuple[str, ...] = field(default_factory=tuple[str, ...])

    @classmethod
    def capped(cls, connector_ids: Iterable[str], *, cap: int) -> ConnectorContext:
        unique: list[str] = []
        for connector_id in connector_ids:
            if connector_id and connector_id not in unique:
                unique.append(connector_id)
        return cls(connector_ids=tuple(unique[: max(cap, 0)]))
