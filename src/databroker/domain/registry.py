"""Registration of entity types, connectors and policies."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from databroker.domain.errors import BadRequestError, ErrorDetail, NotFoundError
from databroker.domain.model import Connector, Entity, Policy
from databroker.domain.query import QueryTranslator

if TYPE_CHECKING:
    from collections.abc import Iterable

    from databroker.domain.identity import IdentityScheme
    from databroker.domain.ports.collaborators import PolicyProvider
    from databroker.domain.ports.unit_of_work import BrokerUnitOfWork

log = logging.getLogger(__name__)


def _slug(value: str, name: str) -> str:
    slug = value.strip().lower()
    if not slug:
        raise BadRequestError(details=[ErrorDetail(name=name, reason="must not be blank")])
    return slug


class Registry:
    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], BrokerUnitOfWork],
        identity: IdentityScheme,
        policies: PolicyProvider | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._identity = identity
        self._policies = policies

    def add_entity(
        self,
        slug: str,
        name: str,
        *,
        description: str = "",
        schema: dict[str, Any] | None = None,
        timeseries: dict[str, Any] | None = None,
    ) -> Entity:
        entity = Entity(
            slug=_slug(slug, "slug"),
            name=name,
            description=description,
            schema=dict(schema or {}),
            timeseries=dict(timeseries or {}),
        )
        with self._unit_of_work_factory() as uow:
            if uow.repositories.entities.get(entity.slug) is not None:
                raise BadRequestError(
                    details=[ErrorDetail(name="slug", reason="entity type already exists")]
                )
            uow.repositories.entities.add(entity)
            uow.commit()
        log.info("Registered entity type %s", entity.slug)
        return entity

    def add_connector(self, entity_slug: str, slug: str) -> Connector:
        """Register a connector, returning it with its reproducible contribution id."""

        entity_slug = _slug(entity_slug, "entity")
        slug = _slug(slug, "slug")
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            if repositories.entities.get(entity_slug) is None:
                raise NotFoundError(f"Entity type {entity_slug} not found")
            if repositories.connectors.get_by_slug(entity_slug, slug) is not None:
                raise BadRequestError(
                    details=[ErrorDetail(name="slug", reason="connector already exists")]
                )
            connector = Connector(
                id=self._identity.contribution_id(entity_slug, slug),
                slug=slug,
                entity_slug=entity_slug,
            )
            repositories.connectors.add(connector)
            uow.commit()
        log.info("Registered connector %s for %s as %s", slug, entity_slug, connector.id)
        return connector

    def get_connector(self, connector_id: str) -> Connector:
        with self._unit_of_work_factory() as uow:
            connector = uow.repositories.connectors.get(connector_id)
            if connector is None:
                raise NotFoundError(f"Connector {connector_id} not found")
            return connector

    def set_live(self, connector_id: str, *, live: bool = True) -> Connector:
        with self._unit_of_work_factory() as uow:
            connector = uow.repositories.connectors.get(connector_id, for_update=True)
            if connector is None:
                raise NotFoundError(f"Connector {connector_id} not found")
            connector.is_live = live
            uow.commit()
        log.info("Connector %s is %s", connector_id, "live" if live else "not live")
        return connector

    def remove_connector(self, connector_id: str) -> None:
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            connector = repositories.connectors.get(connector_id, for_update=True)
            if connector is None:
                raise NotFoundError(f"Connector {connector_id} not found")
            wiped = repositories.catalog.wipe(connector.id)
            discarded = repositories.operations.discard(connector.id)
            repositories.connectors.remove(connector)
            uow.commit()
        log.info(
            "Removed connector %s (%s catalog records, %s log entries)",
            connector_id,
            wiped,
            discarded,
        )

    def add_policy(
        self,
        slug: str,
        *,
        segment_query: dict[str, Any] | None = None,
        field_masks: Iterable[str] = (),
        connector_override: Iterable[str] = (),
    ) -> Policy:
        segment = dict(segment_query or {})
        diagnostics = QueryTranslator().check(segment, name="segment_query")
        if diagnostics:
            raise BadRequestError(details=diagnostics)
        policy = Policy(
            slug=_slug(slug, "slug"),
            segment_query=segment,
            field_masks=list(field_masks),
            connector_override=list(connector_override),
        )
        with self._unit_of_work_factory() as uow:
            existing = uow.repositories.policies.get(policy.slug)
            if existing is not None:
                existing.segment_query = policy.segment_query
                existing.field_masks = policy.field_masks
                existing.connector_override = policy.connector_override
            else:
                uow.repositories.policies.add(policy)
            uow.commit()
        if self._policies is not None:
            self._policies.invalidate(policy.slug)
        log.info("Stored policy %s", policy.slug)
        return policy
