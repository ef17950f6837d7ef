"""
In-process TTL cache used for geocoding results, weather payloads and
generated text.

One store per data category. Entries expire lazily: there is no sweeper,
an expired entry is deleted by the lookup that finds it.

Capacity is optional. When set, inserting a new key into a full store drops
the single oldest-inserted key (FIFO by insertion order, reads do not
refresh an entry's position).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheStats:
    entry_count: int


class TTLCache(Generic[T]):
    """
    Dict-backed key -> value store with per-entry expiry.

    Usage:
        cache: TTLCache[GeoResult] = TTLCache(name="geo")
        hit = cache.get("london")
        if hit is None:
            hit = await resolve(...)
            cache.put("london", hit, ttl=600)
    """

    def __init__(
        self,
        name: str = "cache",
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            name:        Label used in log lines.
            max_entries: Capacity bound; None means unbounded.
            clock:       Seconds source. Defaults to time.monotonic.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.name = name
        self._max_entries = max_entries
        self._clock = clock
        # key -> (expires_at, value); dict order is insertion order
        self._entries: dict[str, tuple[float, T]] = {}

    def get(self, key: str) -> T | None:
        """Return the live value for key, or None on miss / expiry."""
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("%s cache miss: %s", self.name, key)
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug("%s cache expired: %s", self.name, key)
            return None
        logger.debug("%s cache hit: %s", self.name, key)
        return value

    def put(self, key: str, value: T, ttl: float) -> None:
        """Store value under key, overwriting, expiring ttl seconds from now."""
        if key in self._entries:
            # Re-inserting moves the key to the newest FIFO slot.
            del self._entries[key]
        elif self._max_entries is not None and len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("%s cache full (%d); evicted %s", self.name, self._max_entries, oldest)
        self._entries[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> CacheStats:
        # Counts expired entries that have not been looked up yet.
        return CacheStats(entry_count=len(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries
