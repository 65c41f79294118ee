"""In-memory TTL cache with approximate LFU eviction."""
import logging
import math
import re
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_SECONDS = 5 * 60

# Share of max_size dropped when expiry alone does not free enough room
EVICTION_RATIO = 0.2

# Smallest capacity at which an eviction pass frees at least one entry
MIN_MAX_SIZE = 5


@dataclass
class CacheEntry:
    """A cached value with its storage time, lifetime and access count."""

    value: Any
    stored_at: float
    ttl: float
    hit_count: int = 0

    def is_expired(self, now: float) -> bool:
        """Check if the entry outlived its TTL."""
        return now - self.stored_at > self.ttl


@dataclass
class CacheStats:
    """Snapshot of cache usage."""

    size: int
    max_size: int
    hit_count: int
    miss_count: int
    hit_rate: float


class KeyValueCache:
    """
    Process-wide key/value cache bounded by max_size.

    The size bound is restored lazily: cleanup only runs when a set() finds
    the store at capacity. Values are expected to be immutable snapshots
    (e.g. a fetched page), so readers share them without copying.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < MIN_MAX_SIZE:
            raise ValueError(f"max_size must be >= {MIN_MAX_SIZE} (got {max_size})")
        self._store: dict[str, CacheEntry] = {}
        self._max_size = max_size
        self._default_ttl = ttl
        self._clock = clock
        self._hit_count = 0
        self._miss_count = 0

    @property
    def size(self) -> int:
        """Number of entries currently stored (expired ones included)."""
        return len(self._store)

    @property
    def max_size(self) -> int:
        """Configured capacity."""
        return self._max_size

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store value under key, running cleanup first if at capacity."""
        if len(self._store) >= self._max_size:
            self._cleanup()
        self._store[key] = CacheEntry(
            value=value,
            stored_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )

    def get(self, key: str) -> Any | None:
        """Get value, returns None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            self._miss_count += 1
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            self._miss_count += 1
            return None
        entry.hit_count += 1
        self._hit_count += 1
        return entry.value

    def has(self, key: str) -> bool:
        """Check for a live entry without counting a hit or a miss."""
        entry = self._store.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            del self._store[key]
            return False
        return True

    def delete(self, key: str) -> bool:
        """Delete key, returns False if it was not present."""
        return self._store.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry and reset hit/miss counters."""
        self._store.clear()
        self._hit_count = 0
        self._miss_count = 0

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Delete every key matching a regular expression.

        Args:
            pattern:
                Regular expression searched anywhere in the key
                (e.g. '^projects-' for one namespace).

        Returns:
            Number of deleted entries.
        """
        regex = re.compile(pattern)
        matching = [key for key in self._store if regex.search(key)]
        for key in matching:
            del self._store[key]
        if matching:
            logger.debug("cache_invalidated", extra={"pattern": pattern, "deleted": len(matching)})
        return len(matching)

    def stats(self) -> CacheStats:
        """Return size, capacity and hit statistics."""
        accesses = self._hit_count + self._miss_count
        return CacheStats(
            size=len(self._store),
            max_size=self._max_size,
            hit_count=self._hit_count,
            miss_count=self._miss_count,
            hit_rate=self._hit_count / accesses if accesses else 0.0,
        )

    def _cleanup(self) -> None:
        """
        Make room for a new entry.

        Expired entries go first. If the store is still at capacity, the
        least-hit live entries of the pre-cleanup snapshot are dropped
        (floor of 20% of max_size). The sort is stable, so ties fall back
        to insertion order.
        """
        now = self._clock()
        snapshot = list(self._store.items())

        for key, entry in snapshot:
            if entry.is_expired(now):
                del self._store[key]

        if len(self._store) < self._max_size:
            return

        live = sorted(
            ((key, entry) for key, entry in snapshot if not entry.is_expired(now)),
            key=lambda item: item[1].hit_count,
        )
        evict_count = math.floor(self._max_size * EVICTION_RATIO)
        for key, _ in live[:evict_count]:
            self._store.pop(key, None)
        logger.debug("cache_evicted", extra={"evicted": min(evict_count, len(live))})
