"""Policy resolution: cache-aside over the policy repository."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from databroker.domain.errors import NotFoundError

if TYPE_CHECKING:
    from databroker.domain.model import PolicyScope
    from databroker.domain.ports.collaborators import PolicyCache
    from databroker.domain.ports.unit_of_work import BrokerUnitOfWork

log = logging.getLogger(__name__)


class CachedPolicyProvider:
    """Resolve policies from the cache, falling back to the database.

    Cache failures are logged and otherwise ignored: a broken cache slows reads
    down but never blocks them.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], BrokerUnitOfWork],
        cache: PolicyCache | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._cache = cache

    def resolve(self, policy_id: str) -> PolicyScope:
        scope = self._cached(policy_id)
        if scope is not None:
            return scope

        with self._unit_of_work_factory() as uow:
            policy = uow.repositories.policies.get(policy_id)
            if policy is None:
                raise NotFoundError(f"Policy {policy_id} not found")
            scope = policy.scope

        self._store(policy_id, scope)
        return scope

    def invalidate(self, policy_id: str) -> None:
        if self._cache is None:
            return
        try:
            self._cache.invalidate(policy_id)
        except Exception:  # noqa: BLE001
            log.exception("Policy cache invalidate failed for %s", policy_id)

    def _cached(self, policy_id: str) -> PolicyScope | None:
        if self._cache is None:
            return None
        try:
            return self._cache.get(policy_id)
        except Exception:  # noqa: BLE001
            log.exception("Policy cache read failed for %s; using the database", policy_id)
            return None

    def _store(self, policy_id: str, scope: PolicyScope) -> None:
        if self._cache is None:
            return
        try:
            self._cache.set(policy_id, scope)
        except Exception:  # noqa: BLE001
            log.exception("Policy cache write failed for %s", policy_id)
