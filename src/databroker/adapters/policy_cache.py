"""In-process cache for resolved policy scopes."""

from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from threading import Lock
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from databroker.domain.model import PolicyScope

DEFAULT_TTL_SECONDS: Final[float] = 300.0
DEFAULT_MAX_ENTRIES: Final[int] = 1024


class MemoryPolicyCache:
    """Bounded LRU cache with a per-entry time to live."""

    def __init__(
        self,
        *,
        ttl: float | None = DEFAULT_TTL_SECONDS,
        maxsize: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._maxsize = maxsize
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, PolicyScope]] = OrderedDict()
        self._lock = Lock()

    def get(self, key: str) -> PolicyScope | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if self._ttl is not None and self._clock() - stored_at > self._ttl:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def set(self, key: str, value: PolicyScope) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while len(self._entries) > self._maxsize:
                self._entries.popitem(last=False)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
