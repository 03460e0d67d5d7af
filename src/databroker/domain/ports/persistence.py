"""Ports for persisting broker aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from databroker.domain.model import Connector, Entity, Policy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from databroker.domain.model import (
        Action,
        CatalogRecord,
        ConnectorContext,
        Document,
        OperationEntry,
        Page,
    )
    from databroker.domain.query import Node


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class EntityRepository(Repository[Entity], Protocol):
    def get(self, slug: str) -> Entity | None: ...


@runtime_checkable
class ConnectorRepository(Repository[Connector], Protocol):
    def get(self, connector_id: str, *, for_update: bool = False) -> Connector | None: ...

    def get_by_slug(self, entity_slug: str, slug: str) -> Connector | None: ...

    def remove(self, connector: Connector) -> None: ...


@runtime_checkable
class PolicyRepository(Repository[Policy], Protocol):
    def get(self, slug: str) -> Policy | None: ...


@runtime_checkable
class OperationLogRepository(Protocol):
    """Durable, ordered staging area for pending mutations."""

    def append(
        self,
        connector_id: str,
        session_id: str,
        operations: Sequence[tuple[str, Action]],
    ) -> list[OperationEntry]: ...

    def pending(self, connector_id: str, session_id: str) -> list[OperationEntry]: ...

    def remove(self, entries: Sequence[OperationEntry]) -> int: ...

    def discard(self, connector_id: str, session_id: str | None = None) -> int: ...


@runtime_checkable
class CatalogRepository(Protocol):
    """Materialised view of every committed contribution."""

    def upsert(
        self, connector_id: str, public_id: str, vendor_id: str, document: Document
    ) -> None: ...

    def delete(self, connector_id: str, vendor_id: str) -> bool: ...

    def wipe(self, connector_id: str) -> int: ...

    def query(
        self,
        predicate: Node,
        context: ConnectorContext,
        *,
        entity_type: str | None = None,
        public_id: str | None = None,
        page: Page | None = None,
    ) -> list[CatalogRecord]: ...

    def types(self, predicate: Node, context: ConnectorContext) -> list[str]: ...
