"""
Registry aggregates: entity types, connectors and the session handle a connector holds.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from databroker.domain.model.enums import SessionMode


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False, kw_only=True)
class Entity:
    """An entity type which connectors contribute instances of."""

    slug: str
    name: str
    description: str = ""
    schema: dict[str, Any] = field(default_factory=dict[str, Any])
    timeseries: dict[str, Any] = field(default_factory=dict[str, Any])


@dataclass(frozen=True, slots=True)
class SessionHandle:
    """The open session of a connector."""

    session_id: str
    mode: SessionMode
    started_at: datetime


@dataclass(eq=False, kw_only=True)
class Connector:
    """A registered contributor scoped to one entity type.

    Only the session id, mode and start time are held here; the buffered
    operations live in their own log keyed by ``(id, session_id)``.
    """

    id: str
    slug: str
    entity_slug: str
    is_live: bool = False
    session_id: str | None = None
    session_mode: SessionMode | None = None
    session_started: datetime | None = None

    @property
    def open_session(self) -> SessionHandle | None:
        if self.session_id is None or self.session_mode is None or self.session_started is None:
            return None
        return SessionHandle(
            session_id=self.session_id,
            mode=self.session_mode,
            started_at=self.session_started,
        )

    def begin_session(self, handle: SessionHandle) -> None:
        self.session_id = handle.session_id
        self.session_mode = handle.mode
        self.session_started = handle.started_at

    def end_session(self) -> None:
        self.session_id = None
        self.session_mode = None
        self.session_started = None
