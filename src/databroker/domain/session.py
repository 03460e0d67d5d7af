"""Contribution sessions: open, submit actions, close with commit or rollback.

A connector owns at most one open session. Actions are appended to the
operation log under the session id; STREAM sessions replay each batch as soon as
it is appended, ACCRUE and REPLACE sessions replay at commit. Replay always runs
in log sequence order inside a single unit of work, so a REPLACE commit swaps the
connector's catalog content atomically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, assert_never

from databroker.domain.errors import (
    BadRequestError,
    ErrorDetail,
    NotFoundError,
    UnauthorizedError,
)
from databroker.domain.model import Delete, SessionHandle, SessionMode, Upsert, utcnow
from databroker.domain.records import build_actions, parse_action_kind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from databroker.domain.identity import IdentityScheme
    from databroker.domain.model import ActionKind, Connector, OperationEntry
    from databroker.domain.ports.collaborators import RecordValidator
    from databroker.domain.ports.unit_of_work import BrokerRepositories, BrokerUnitOfWork

log = logging.getLogger(__name__)

UnitOfWorkFactory = Callable[[], "BrokerUnitOfWork"]


def parse_session_mode(value: str | SessionMode) -> SessionMode:
    try:
        return SessionMode(str(value).lower())
    except ValueError:
        raise BadRequestError(details=[ErrorDetail(name="mode", reason="not recognised")]) from None


def parse_commit(value: str | bool) -> bool:
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized not in {"true", "false"}:
        raise BadRequestError(details=[ErrorDetail(name="commit", reason="not recognised")])
    return normalized == "true"


def replay(repositories: BrokerRepositories, entries: Sequence[OperationEntry]) -> int:
    """Apply log entries to the catalog strictly in sequence order."""

    catalog = repositories.catalog
    ordered = sorted(entries, key=lambda entry: entry.sequence)
    for entry in ordered:
        match entry.action:
            case Upsert(vendor_id=vendor_id, document=document):
                catalog.upsert(entry.connector_id, entry.public_id, vendor_id, document)
            case Delete(vendor_id=vendor_id):
                catalog.delete(entry.connector_id, vendor_id)
            case _:
                assert_never(entry.action)
    return len(ordered)


class SessionManager:
    """Per-connector session lifecycle over the operation log and catalog."""

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        identity: IdentityScheme,
        validator: RecordValidator,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._identity = identity
        self._validator = validator
        self._clock = clock

    def open(self, connector_id: str, mode: str | SessionMode) -> str:
        session_mode = parse_session_mode(mode)
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            connector = self._connector(repositories, connector_id)
            previous = connector.open_session
            if previous is not None:
                discarded = repositories.operations.discard(connector.id)
                log.warning(
                    "Connector %s opened a %s session over open session %s; discarded %s entries",
                    connector.id,
                    session_mode,
                    previous.session_id,
                    discarded,
                )
            handle = SessionHandle(
                session_id=self._identity.session_id(),
                mode=session_mode,
                started_at=self._clock(),
            )
            connector.begin_session(handle)
            uow.commit()
        log.info("Connector %s opened %s session %s", connector_id, session_mode, handle.session_id)
        return handle.session_id

    def action(
        self,
        connector_id: str,
        session_id: str,
        action: str | ActionKind,
        records: object,
    ) -> dict[str, str]:
        kind = parse_action_kind(action)
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            connector = self._connector(repositories, connector_id)
            handle = self._authorize(connector, session_id)
            entity = repositories.entities.get(connector.entity_slug)
            if entity is None:
                raise NotFoundError(f"Entity type {connector.entity_slug} not found")

            actions = build_actions(kind, records, entity, self._validator)
            correlation: dict[str, str] = {}
            operations: list[tuple[str, Upsert | Delete]] = []
            for item in actions:
                public_id = self._identity.public_id(connector.id, item.vendor_id)
                correlation[item.vendor_id] = public_id
                operations.append((public_id, item))

            entries = repositories.operations.append(connector.id, handle.session_id, operations)
            if handle.mode is SessionMode.STREAM:
                replay(repositories, entries)
                repositories.operations.remove(entries)
            uow.commit()

        log.debug(
            "Connector %s session %s accepted %s %s records",
            connector_id,
            session_id,
            len(correlation),
            kind,
        )
        return correlation

    def close(self, connector_id: str, session_id: str, commit: str | bool) -> None:
        should_commit = parse_commit(commit)
        with self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            connector = self._connector(repositories, connector_id)
            handle = self._authorize(connector, session_id)
            applied = 0
            if should_commit:
                entries = repositories.operations.pending(connector.id, handle.session_id)
                if handle.mode is SessionMode.REPLACE:
                    wiped = repositories.catalog.wipe(connector.id)
                    log.info("Connector %s replace commit wiped %s records", connector.id, wiped)
                applied = replay(repositories, entries)
            repositories.operations.discard(connector.id, handle.session_id)
            connector.end_session()
            uow.commit()
        log.info(
            "Connector %s closed %s session %s (commit=%s, applied=%s)",
            connector_id,
            handle.mode,
            session_id,
            should_commit,
            applied,
        )

    @staticmethod
    def _connector(repositories: BrokerRepositories, connector_id: str) -> Connector:
        connector = repositories.connectors.get(connector_id, for_update=True)
        if connector is None:
            raise NotFoundError(f"Connector {connector_id} not found")
        return connector

    @staticmethod
    def _authorize(connector: Connector, session_id: str) -> SessionHandle:
        handle = connector.open_session
        if handle is None or handle.session_id != session_id:
            raise UnauthorizedError(f"Session {session_id} is not open on this connector")
        return handle
