"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, insert, or_, select, true
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from databroker.adapters.sqlalchemy.mappings import (
    catalog_table,
    connector_table,
    operation_table,
)
from databroker.adapters.sqlalchemy.predicates import compile_predicate
from databroker.domain.model import (
    CatalogRecord,
    Connector,
    Entity,
    OperationEntry,
    Policy,
    action_from_payload,
    utcnow,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy import Row, Select
    from sqlalchemy.orm import Session

    from databroker.domain.model import Action, ConnectorContext, Document, Page
    from databroker.domain.query import Node


class SqlAlchemyEntityRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Entity) -> None:
        self.session.add(entity)

    def get(self, slug: str) -> Entity | None:
        return self.session.get(Entity, slug)


class SqlAlchemyConnectorRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Connector) -> None:
        self.session.add(entity)

    def get(self, connector_id: str, *, for_update: bool = False) -> Connector | None:
        stmt = select(Connector).where(connector_table.c.id == connector_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_by_slug(self, entity_slug: str, slug: str) -> Connector | None:
        stmt = (
            select(Connector)
            .where(connector_table.c.entity_slug == entity_slug)
            .where(connector_table.c.slug == slug)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def remove(self, connector: Connector) -> None:
        self.session.delete(connector)


class SqlAlchemyPolicyRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Policy) -> None:
        self.session.add(entity)

    def get(self, slug: str) -> Policy | None:
        return self.session.get(Policy, slug)


class SqlAlchemyOperationLogRepository:
    """Operation log stored in the ``operation`` table; sequence is the row id."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def append(
        self,
        connector_id: str,
        session_id: str,
        operations: Sequence[tuple[str, Action]],
    ) -> list[OperationEntry]:
        entries: list[OperationEntry] = []
        for public_id, action in operations:
            result = self.session.execute(
                insert(operation_table).values(
                    connector_id=connector_id,
                    session_id=session_id,
                    public_id=public_id,
                    vendor_id=action.vendor_id,
                    action=action.kind,
                    payload=action.payload,
                )
            )
            entries.append(
                OperationEntry(
                    connector_id=connector_id,
                    session_id=session_id,
                    sequence=int(result.inserted_primary_key[0]),
                    public_id=public_id,
                    action=action,
                )
            )
        return entries

    def pending(self, connector_id: str, session_id: str) -> list[OperationEntry]:
        stmt = (
            select(operation_table)
            .where(operation_table.c.connector_id == connector_id)
            .where(operation_table.c.session_id == session_id)
            .order_by(operation_table.c.sequence)
        )
        return [
            OperationEntry(
                connector_id=row.connector_id,
                session_id=row.session_id,
                sequence=row.sequence,
                public_id=row.public_id,
                action=action_from_payload(row.action, row.payload),
            )
            for row in self.session.execute(stmt)
        ]

    def remove(self, entries: Sequence[OperationEntry]) -> int:
        if not entries:
            return 0
        stmt = delete(operation_table).where(
            operation_table.c.sequence.in_([entry.sequence for entry in entries])
        )
        return self.session.execute(stmt).rowcount

    def discard(self, connector_id: str, session_id: str | None = None) -> int:
        stmt = delete(operation_table).where(operation_table.c.connector_id == connector_id)
        if session_id is not None:
            stmt = stmt.where(operation_table.c.session_id == session_id)
        return self.session.execute(stmt).rowcount


class SqlAlchemyCatalogRepository:
    """Catalog rows addressed by ``(connector_id, vendor_id)`` and by public id."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def upsert(
        self, connector_id: str, public_id: str, vendor_id: str, document: Document
    ) -> None:
        now = utcnow()
        stmt = sqlite_insert(catalog_table).values(
            connector_id=connector_id,
            public_id=public_id,
            vendor_id=vendor_id,
            document=document,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[catalog_table.c.connector_id, catalog_table.c.vendor_id],
            set_={"document": stmt.excluded.document, "updated_at": stmt.excluded.updated_at},
        )
        self.session.execute(stmt)

    def delete(self, connector_id: str, vendor_id: str) -> bool:
        stmt = (
            delete(catalog_table)
            .where(catalog_table.c.connector_id == connector_id)
            .where(catalog_table.c.vendor_id == vendor_id)
        )
        return self.session.execute(stmt).rowcount > 0

    def wipe(self, connector_id: str) -> int:
        stmt = delete(catalog_table).where(catalog_table.c.connector_id == connector_id)
        return self.session.execute(stmt).rowcount

    def query(
        self,
        predicate: Node,
        context: ConnectorContext,
        *,
        entity_type: str | None = None,
        public_id: str | None = None,
        page: Page | None = None,
    ) -> list[CatalogRecord]:
        stmt = self._scoped(
            select(catalog_table, connector_table.c.entity_slug),
            predicate,
            context,
        )
        if entity_type is not None:
            stmt = stmt.where(connector_table.c.entity_slug == entity_type)
        if public_id is not None:
            stmt = stmt.where(catalog_table.c.public_id == public_id)
        stmt = stmt.order_by(catalog_table.c.id)
        if page is not None:
            stmt = stmt.offset(page.offset)
            if page.limit is not None:
                stmt = stmt.limit(page.limit)
        return [self._record(row) for row in self.session.execute(stmt)]

    def types(self, predicate: Node, context: ConnectorContext) -> list[str]:
        stmt = self._scoped(
            select(connector_table.c.entity_slug).distinct(),
            predicate,
            context,
        ).order_by(connector_table.c.entity_slug)
        return list(self.session.execute(stmt).scalars())

    @staticmethod
    def _scoped(
        stmt: Select[Any], predicate: Node, context: ConnectorContext
    ) -> Select[Any]:
        visible = or_(
            connector_table.c.is_live == true(),
            connector_table.c.id.in_(context.connector_ids),
        )
        return (
            stmt.select_from(catalog_table)
            .join(connector_table, catalog_table.c.connector_id == connector_table.c.id)
            .where(visible)
            .where(compile_predicate(predicate, catalog_table.c.document))
        )

    @staticmethod
    def _record(row: Row[Any]) -> CatalogRecord:
        return CatalogRecord(
            connector_id=row.connector_id,
            public_id=row.public_id,
            vendor_id=row.vendor_id,
            document=row.document,
            created_at=row.created_at,
            updated_at=row.updated_at,
            entity_type=row.entity_slug,
        )
