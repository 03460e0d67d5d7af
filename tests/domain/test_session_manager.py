"""Session lifecycle: stream, accrue and replace contributions."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.exc import OperationalError

from databroker.adapters.sqlalchemy.repositories import SqlAlchemyCatalogRepository
from databroker.domain.errors import BadRequestError, InternalError, NotFoundError, UnauthorizedError
from databroker.domain.model import SessionMode
from tests.helpers.catalog import FRANCE, GERMANY, NEPAL, contribute, records

if TYPE_CHECKING:
    from collections.abc import Callable

    from databroker.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork
    from databroker.app import Broker
    from databroker.domain.identity import IdentityScheme
    from databroker.domain.model import Connector


def _names(broker: Broker, connector: Connector) -> list[str]:
    listed = broker.catalog.list("country", connectors=[connector.id])
    return sorted(item["name"] for item in listed)


def _pending(
    unit_of_work: Callable[[], SqlAlchemyUnitOfWork], connector: Connector, session_id: str
) -> int:
    with unit_of_work() as uow:
        return len(uow.repositories.operations.pending(connector.id, session_id))


def test_open_returns_a_fresh_session_token(broker: Broker, wikipedia: Connector) -> None:
    session_id = broker.sessions.open(wikipedia.id, "stream")

    assert re.fullmatch(r"[0-9a-f]{32}", session_id)
    handle = broker.registry.get_connector(wikipedia.id).open_session
    assert handle is not None
    assert handle.session_id == session_id
    assert handle.mode is SessionMode.STREAM


def test_stream_actions_are_visible_immediately(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    session_id = broker.sessions.open(wikipedia.id, SessionMode.STREAM)

    broker.sessions.action(wikipedia.id, session_id, "upsert", records(FRANCE))

    assert _names(broker, wikipedia) == ["France"]
    assert _pending(sqlite_unit_of_work, wikipedia, session_id) == 0


def test_correlation_map_uses_deterministic_public_ids(
    broker: Broker, wikipedia: Connector, identity: IdentityScheme
) -> None:
    session_id = broker.sessions.open(wikipedia.id, "stream")

    correlation = broker.sessions.action(
        wikipedia.id, session_id, "upsert", records(FRANCE, GERMANY)
    )

    assert correlation == {
        "Q142": identity.public_id(wikipedia.id, "Q142"),
        "Q183": identity.public_id(wikipedia.id, "Q183"),
    }


def test_accrue_buffers_until_commit(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    session_id = broker.sessions.open(wikipedia.id, "accrue")
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(FRANCE))
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(GERMANY))

    assert _names(broker, wikipedia) == []
    assert _pending(sqlite_unit_of_work, wikipedia, session_id) == 2

    broker.sessions.close(wikipedia.id, session_id, "true")

    assert _names(broker, wikipedia) == ["France", "Germany"]
    assert _pending(sqlite_unit_of_work, wikipedia, session_id) == 0
    assert broker.registry.get_connector(wikipedia.id).open_session is None


def test_replay_follows_log_order(broker: Broker, wikipedia: Connector) -> None:
    session_id = broker.sessions.open(wikipedia.id, "accrue")
    renamed = records(FRANCE)
    renamed[0]["name"] = "French Republic"
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(FRANCE))
    broker.sessions.action(wikipedia.id, session_id, "delete", ["Q142"])
    broker.sessions.action(wikipedia.id, session_id, "upsert", renamed)

    broker.sessions.close(wikipedia.id, session_id, True)

    assert _names(broker, wikipedia) == ["French Republic"]


def test_replace_swaps_content_only_at_commit(broker: Broker, wikipedia: Connector) -> None:
    contribute(broker, wikipedia.id, records(FRANCE, GERMANY))

    session_id = broker.sessions.open(wikipedia.id, "replace")
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(NEPAL))

    assert _names(broker, wikipedia) == ["France", "Germany"]

    broker.sessions.close(wikipedia.id, session_id, "true")

    assert _names(broker, wikipedia) == ["Nepal"]


def test_replace_failure_leaves_previous_content(
    broker: Broker,
    wikipedia: Connector,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    contribute(broker, wikipedia.id, records(FRANCE, GERMANY))
    session_id = broker.sessions.open(wikipedia.id, "replace")
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(NEPAL))

    def failing_upsert(*_args: object, **_kwargs: object) -> None:
        raise OperationalError("INSERT INTO catalog", {}, Exception("disk I/O error"))

    monkeypatch.setattr(SqlAlchemyCatalogRepository, "upsert", failing_upsert)

    with pytest.raises(InternalError):
        broker.sessions.close(wikipedia.id, session_id, "true")

    monkeypatch.undo()
    assert _names(broker, wikipedia) == ["France", "Germany"]
    handle = broker.registry.get_connector(wikipedia.id).open_session
    assert handle is not None
    assert handle.session_id == session_id


def test_rollback_discards_buffered_actions(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    session_id = broker.sessions.open(wikipedia.id, "accrue")
    broker.sessions.action(wikipedia.id, session_id, "upsert", records(FRANCE))

    broker.sessions.close(wikipedia.id, session_id, "false")

    assert _names(broker, wikipedia) == []
    assert _pending(sqlite_unit_of_work, wikipedia, session_id) == 0


def test_opening_over_an_open_session_discards_it(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    caplog: pytest.LogCaptureFixture,
) -> None:
    first = broker.sessions.open(wikipedia.id, "accrue")
    broker.sessions.action(wikipedia.id, first, "upsert", records(FRANCE))

    with caplog.at_level("WARNING", logger="databroker.domain.session"):
        second = broker.sessions.open(wikipedia.id, "accrue")

    assert first != second
    assert _pending(sqlite_unit_of_work, wikipedia, first) == 0
    assert "discarded 1 entries" in caplog.text
    with pytest.raises(UnauthorizedError):
        broker.sessions.action(wikipedia.id, first, "upsert", records(GERMANY))
    with pytest.raises(UnauthorizedError):
        broker.sessions.close(wikipedia.id, first, "true")

    broker.sessions.close(wikipedia.id, second, "true")
    assert _names(broker, wikipedia) == []


def test_deleting_an_absent_record_is_not_an_error(broker: Broker, wikipedia: Connector) -> None:
    session_id = broker.sessions.open(wikipedia.id, "stream")

    correlation = broker.sessions.action(wikipedia.id, session_id, "delete", ["Q999"])
    broker.sessions.action(wikipedia.id, session_id, "delete", [{"id": "Q999"}])

    assert list(correlation) == ["Q999"]
    assert _names(broker, wikipedia) == []


def test_invalid_batch_is_rejected_as_a_whole(
    broker: Broker,
    wikipedia: Connector,
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    session_id = broker.sessions.open(wikipedia.id, "accrue")
    batch = records(FRANCE, GERMANY)
    batch[1]["entity"]["iso_code"] = "DEU"

    with pytest.raises(BadRequestError) as exc:
        broker.sessions.action(wikipedia.id, session_id, "upsert", batch)

    assert {detail.index for detail in exc.value.details} == {1}
    assert _pending(sqlite_unit_of_work, wikipedia, session_id) == 0


def test_actions_require_the_current_session(broker: Broker, wikipedia: Connector) -> None:
    broker.sessions.open(wikipedia.id, "stream")

    with pytest.raises(UnauthorizedError):
        broker.sessions.action(wikipedia.id, "not-the-session", "upsert", records(FRANCE))


def test_closing_without_a_session_is_unauthorized(broker: Broker, wikipedia: Connector) -> None:
    with pytest.raises(UnauthorizedError):
        broker.sessions.close(wikipedia.id, "anything", "true")


def test_unknown_connector_is_not_found(broker: Broker) -> None:
    with pytest.raises(NotFoundError):
        broker.sessions.open("0" * 64, "stream")


@pytest.mark.parametrize(
    ("mode", "action", "commit", "field"),
    [
        ("batch", "upsert", "true", "mode"),
        ("stream", "merge", "true", "action"),
        ("stream", "upsert", "yes", "commit"),
    ],
)
def test_unrecognised_tokens_are_bad_requests(
    broker: Broker,
    wikipedia: Connector,
    mode: str,
    action: str,
    commit: str,
    field: str,
) -> None:
    with pytest.raises(BadRequestError) as exc:
        session_id = broker.sessions.open(wikipedia.id, mode)
        broker.sessions.action(wikipedia.id, session_id, action, records(FRANCE))
        broker.sessions.close(wikipedia.id, session_id, commit)

    assert exc.value.details[0].name == field
