"""Data-segment policies consumers read through."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class PolicyScope:
    """Resolved read scope: segment filter, hidden fields and connector overrides."""

    segment_query: dict[str, Any] = field(default_factory=dict[str, Any])
    field_masks: tuple[str, ...] = ()
    connector_override: tuple[str, ...] = ()

    @classmethod
    def empty(cls) -> PolicyScope:
        return cls()


@dataclass(eq=False, kw_only=True)
class Policy:
    slug: str
    segment_query: dict[str, Any] = field(default_factory=dict[str, Any])
    field_masks: list[str] = field(default_factory=list[str])
    connector_override: list[str] = field(default_factory=list[str])

    @property
    def scope(self) -> PolicyScope:
        return PolicyScope(
            segment_query=dict(self.segment_query),
            field_masks=tuple(self.field_masks),
            connector_override=tuple(self.connector_override),
        )
