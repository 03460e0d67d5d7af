"""Consumer reads over the catalog, scoped by policy and connector visibility."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from databroker.config.broker import CatalogSettings
from databroker.domain import views
from databroker.domain.errors import BadRequestError, ErrorDetail, NotFoundError
from databroker.domain.model import ConnectorContext, Page, PolicyScope
from databroker.domain.query import QueryTranslator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from databroker.domain.model import CatalogRecord
    from databroker.domain.ports.collaborators import PolicyProvider
    from databroker.domain.ports.unit_of_work import BrokerUnitOfWork
    from databroker.domain.query import Node

log = logging.getLogger(__name__)


class CatalogReader:
    """Read façade combining client filters, policy scope and visibility rules."""

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], BrokerUnitOfWork],
        policies: PolicyProvider | None = None,
        translator: QueryTranslator | None = None,
        settings: CatalogSettings | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._policies = policies
        self._translator = translator or QueryTranslator()
        self._settings = settings or CatalogSettings()

    def types(self, policy_id: str | None = None, *, connectors: Iterable[str] = ()) -> list[str]:
        scope = self._scope(policy_id)
        predicate = self._predicate(scope)
        with self._unit_of_work_factory() as uow:
            return uow.repositories.catalog.types(predicate, self._context(scope, connectors))

    def list(
        self,
        entity_type: str,
        policy_id: str | None = None,
        *,
        connectors: Iterable[str] = (),
        offset: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        scope = self._scope(policy_id)
        records = self._records(
            self._predicate(scope),
            self._context(scope, connectors),
            entity_type=entity_type.lower(),
            page=self._page(offset, limit),
        )
        return views.instances(records, scope.field_masks)

    def find(
        self,
        entity_type: str,
        public_id: str,
        policy_id: str | None = None,
        *,
        connectors: Iterable[str] = (),
    ) -> dict[str, Any]:
        scope = self._scope(policy_id)
        records = self._records(
            self._predicate(scope),
            self._context(scope, connectors),
            entity_type=entity_type.lower(),
            public_id=public_id.lower(),
            page=Page(limit=1),
        )
        if not records:
            raise NotFoundError(f"No {entity_type} instance {public_id}")
        return views.instance(records[0], scope.field_masks)

    def query(
        self,
        q: str | dict[str, Any] | None,
        policy_id: str | None = None,
        *,
        connectors: Iterable[str] = (),
        offset: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        if q is None or (isinstance(q, str) and not q.strip()):
            raise BadRequestError(details=[ErrorDetail(name="q", reason="a query is required")])
        client = self._translator.translate(q)
        if not client.valid:
            raise BadRequestError(details=self._translator.check(q))
        scope = self._scope(policy_id)
        predicate = self._translator.scope(client, self._translator.translate(scope.segment_query))
        records = self._records(
            predicate,
            self._context(scope, connectors),
            page=self._page(offset, limit),
        )
        return views.instances(records, scope.field_masks)

    def _scope(self, policy_id: str | None) -> PolicyScope:
        if policy_id is None or self._policies is None:
            return PolicyScope.empty()
        return self._policies.resolve(policy_id)

    def _predicate(self, scope: PolicyScope) -> Node:
        segment = self._translator.translate(scope.segment_query)
        if not segment.valid:
            log.error("Policy segment query is invalid (%s); no records will match", segment.reason)
        return self._translator.scope(segment)

    def _context(self, scope: PolicyScope, connectors: Iterable[str]) -> ConnectorContext:
        return ConnectorContext.capped(
            (*scope.connector_override, *connectors),
            cap=self._settings.max_override_connectors,
        )

    def _page(self, offset: int, limit: int | None) -> Page:
        if offset < 0 or (limit is not None and limit < 0):
            raise BadRequestError(
                details=[ErrorDetail(name="paging", reason="offset and limit must not be negative")]
            )
        return Page(offset=offset, limit=limit).resolve(
            default=self._settings.page_size, maximum=self._settings.max_page_size
        )

    def _records(
        self,
        predicate: Node,
        context: ConnectorContext,
        *,
        entity_type: str | None = None,
        public_id: str | None = None,
        page: Page | None = None,
    ) -> list[CatalogRecord]:
        with self._unit_of_work_factory() as uow:
            return uow.repositories.catalog.query(
                predicate,
                context,
                entity_type=entity_type,
                public_id=public_id,
                page=page,
            )
