from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from databroker.domain.errors import BadRequestError, NotFoundError
from tests.helpers.catalog import FRANCE, contribute, records

if TYPE_CHECKING:
    from collections.abc import Callable

    from databroker.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from databroker.app import Broker
    from databroker.domain.identity import IdentityScheme
    from databroker.domain.model import Connector, Entity


def test_connector_ids_come_from_the_identity_scheme(
    broker: Broker, country: Entity, identity: IdentityScheme
) -> None:
    connector = broker.registry.add_connector("Country", " Wikipedia ")

    assert connector.slug == "wikipedia"
    assert connector.entity_slug == "country"
    assert connector.id == identity.contribution_id("country", "wikipedia")
    assert connector.is_live is False


def test_duplicate_registrations_are_rejected(broker: Broker, wikipedia: Connector) -> None:
    with pytest.raises(BadRequestError):
        broker.registry.add_connector("country", "wikipedia")
    with pytest.raises(BadRequestError):
        broker.registry.add_entity("country", "Country again")


def test_connectors_need_a_known_entity_type(broker: Broker) -> None:
    with pytest.raises(NotFoundError):
        broker.registry.add_connector("planet", "nasa")


def test_set_live_toggles_visibility_flag(broker: Broker, wikipedia: Connector) -> None:
    assert broker.registry.set_live(wikipedia.id).is_live is True
    assert broker.registry.set_live(wikipedia.id, live=False).is_live is False
    assert broker.registry.get_connector(wikipedia.id).is_live is False


def test_removing_a_connector_cascades_and_recreation_is_reproducible(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    before = contribute(broker, wikipedia.id, records(FRANCE))
    session_id = broker.sessions.open(wikipedia.id, "accrue")
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(FRANCE))

    broker.registry.remove_connector(wikipedia.id)

    with pytest.raises(NotFoundError):
        broker.registry.get_connector(wikipedia.id)
    with sqlite_unit_of_work() as uow:
        assert uow.repositories.operations.pending(wikipedia.id, session_id) == []

    again = broker.registry.add_connector("country", "wikipedia")
    assert again.id == wikipedia.id
    assert broker.catalog.list("country", connectors=[again.id]) == []
    after = contribute(broker, again.id, records(FRANCE))
    assert after == before


def test_policies_are_validated_and_replaceable(broker: Broker) -> None:
    with pytest.raises(BadRequestError) as exc:
        broker.registry.add_policy("bad", segment_query={"$foo": 1})
    assert exc.value.details[0].name == "segment_query"

    broker.registry.add_policy("europe", segment_query={"entity.continent": "europe"})
    broker.registry.add_policy("europe", field_masks=["country.population"])

    scope = broker.policies.resolve("europe")
    assert scope.segment_query == {}
    assert scope.field_masks == ("country.population",)


def test_blank_slugs_are_rejected(broker: Broker) -> None:
    with pytest.raises(BadRequestError):
        broker.registry.add_entity("  ", "Nothing")
