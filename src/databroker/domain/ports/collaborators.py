"""Ports for collaborators the broker consumes but does not own."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from databroker.domain.model import PolicyScope


@runtime_checkable
class RecordValidator(Protocol):
    """Checks one document against an entity's registered schema."""

    def validate(self, document: Any, schema: dict[str, Any]) -> list[str]: ...


@runtime_checkable
class PolicyCache(Protocol):
    """Cache-aside store for resolved policy scopes; ``get`` returns None on a miss."""

    def get(self, key: str) -> PolicyScope | None: ...

    def set(self, key: str, value: PolicyScope) -> None: ...

    def invalidate(self, key: str) -> None: ...


@runtime_checkable
class PolicyProvider(Protocol):
    def resolve(self, policy_id: str) -> PolicyScope: ...

    def invalidate(self, policy_id: str) -> None: ...
