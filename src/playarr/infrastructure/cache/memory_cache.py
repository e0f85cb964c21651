"""Process-scoped in-memory cache of resolved stream URLs.

Entries expire ``ttl`` seconds after resolution. Expired entries are
dropped when looked up and by a sweep every ``sweep_interval`` lookups;
the cache never holds more than ``max_entries`` (oldest insert first out).

Not thread-safe: owned by the resolution coordinator and only touched
from the event loop.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog

from playarr.domain.entities.streaming import (
    CacheEntry,
    ResolutionKey,
    ResolvedStreamUrl,
)

log = structlog.get_logger(__name__)

Clock = Callable[[], float]


class ResolutionCache:
    def __init__(
        self,
        *,
        max_entries: int = 10_000,
        sweep_interval: int = 1000,
        clock: Clock = time.monotonic,
    ) -> None:
        self._entries: dict[ResolutionKey, CacheEntry] = {}
        self._max_entries = max_entries
        self._sweep_interval = sweep_interval
        self._clock = clock
        self._lookups = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, ResolutionKey) and self.get(key) is not None

    def now(self) -> float:
        return self._clock()

    def get(self, key: ResolutionKey) -> ResolvedStreamUrl | None:
        """Return the live entry for *key*, evicting it if expired."""
        self._lookups += 1
        if self._sweep_interval and self._lookups % self._sweep_interval == 0:
            self.sweep()

        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            log.debug("resolution_cache_expired", key=str(key))
            return None
        return entry.stream

    def put(self, key: ResolutionKey, stream: ResolvedStreamUrl) -> None:
        # Re-inserting moves the key to the back of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, stream=stream)
        if len(self._entries) > self._max_entries:
            excess = len(self._entries) - self._max_entries
            for old_key in list(self._entries)[:excess]:
                del self._entries[old_key]

    def invalidate(self, key: ResolutionKey) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Drop every expired entry; return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for k in expired:
            del self._entries[k]
        if expired:
            log.debug("resolution_cache_sweep", removed=len(expired), size=len(self._entries))
        return len(expired)
