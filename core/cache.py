"""
In-process TTL caching primitives.

Provides:
- CacheEntry: a value stamped with the time it was fetched
- TTLCache: one entry per key, lazily re-validated against an injectable clock
- CacheStats: hit/miss counters for monitoring

Usage:
    from core.cache import TTLCache

    cache = TTLCache(ttl_seconds=1800)
    rows = cache.get("Sheet1")
    if rows is None:
        rows = await fetch("Sheet1")
        cache.set("Sheet1", rows)
"""
import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Hashable, Optional, TypeVar

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass
class CacheStats:
    """Cache statistics for monitoring."""

    hits: int = 0
    misses: int = 0
    refreshes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "refreshes": self.refreshes,
            "hit_rate_percent": round(self.hit_rate, 2),
        }

    def reset(self) -> None:
        """Reset all counters."""
        self.hits = 0
        self.misses = 0
        self.refreshes = 0


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the clock reading at which it was fetched."""

    value: T
    fetched_at: float

    def age(self, now: float) -> float:
        return now - self.fetched_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return self.age(now) < ttl_seconds


class TTLCache(Generic[T]):
    """
    Map of key -> CacheEntry with a single TTL.

    Entries are never evicted, only overwritten when refreshed. Staleness is
    checked lazily on read.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None):
        self.ttl_seconds = ttl_seconds
        self.clock: Clock = clock or time.monotonic
        self._entries: Dict[Hashable, CacheEntry[T]] = {}
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> Optional[T]:
        """Return the cached value if present and fresh, else None."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self.clock(), self.ttl_seconds):
            self._stats.hits += 1
            return entry.value
        self._stats.misses += 1
        return None

    def set(self, key: Hashable, value: T) -> CacheEntry[T]:
        """Store value stamped with the current clock reading."""
        if key in self._entries:
            self._stats.refreshes += 1
        entry = CacheEntry(value=value, fetched_at=self.clock())
        self._entries[key] = entry
        return entry

    def invalidate(self, key: Optional[Hashable] = None) -> int:
        """Drop one entry, or every entry when key is None."""
        if key is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        return 1 if self._entries.pop(key, None) is not None else 0

    def get_stats(self) -> dict:
        return {
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            **self._stats.to_dict(),
        }
