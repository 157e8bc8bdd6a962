"""Bounded in-memory memo cache for referentially transparent lookups.

Classification of a scale into a semantic level never changes for a given
threshold table, so results can be memoized. This cache is process-local,
bounded by ``max_entries`` and evicts the least recently used 10% when full.
Entries never expire unless a ttl is given.

Keys are formatted as ``"{prefix}:{namespace}:{...}"`` (for example
``"level:physics:0.5"``); statistics are tracked globally and per namespace.
"""

from datetime import datetime, timedelta
from dataclasses import dataclass
from typing import Any
import logging
import threading

logger = logging.getLogger("canvaslod.cache")


@dataclass
class CacheStats:
    """Hit/miss counters for cache monitoring."""
    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    sets: int = 0

    @property
    def total_requests(self) -> int:
        """Total number of get requests."""
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Cache hit rate as a percentage (0-100)."""
        if self.total_requests == 0:
            return 0.0
        return (self.hits / self.total_requests) * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary for JSON serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "sets": self.sets,
            "total_requests": self.total_requests,
            "hit_rate": round(self.hit_rate, 2),
        }

    def reset(self) -> None:
        """Reset all statistics to zero."""
        self.hits = 0
        self.misses = 0
        self.expirations = 0
        self.evictions = 0
        self.sets = 0


class SimpleCache:
    """In-memory memo cache with optional TTL and LRU-style eviction.

    Writes are guarded by a lock; reads are lock-free and may observe a value
    that is being replaced, which is harmless for memoized pure results.
    """

    def __init__(self, max_entries: int = 4096, default_ttl: int | None = None):
        """Initialize the cache.

        Args:
            max_entries: Maximum number of entries to store
            default_ttl: Default time-to-live in seconds, None for no expiry
        """
        self._cache: dict[str, tuple[Any, datetime | None]] = {}
        self._access_times: dict[str, datetime] = {}
        self._max_entries = max_entries
        self._default_ttl = default_ttl
        self._lock = threading.RLock()
        self._stats = CacheStats()
        self._namespace_stats: dict[str, CacheStats] = {}

    def _get_namespace(self, key: str) -> str:
        parts = key.split(":")
        if len(parts) >= 3:
            return parts[1]
        return parts[0] if len(parts) == 2 else "default"

    def _namespace(self, key: str) -> CacheStats:
        namespace = self._get_namespace(key)
        if namespace not in self._namespace_stats:
            self._namespace_stats[namespace] = CacheStats()
        return self._namespace_stats[namespace]

    def _evict_if_needed(self) -> int:
        """Evict least recently used entries when at capacity."""
        if len(self._cache) < self._max_entries:
            return 0

        to_evict = max(1, self._max_entries // 10)
        oldest = sorted(
            self._access_times,
            key=lambda k: self._access_times.get(k, datetime.min),
        )[:to_evict]
        for key in oldest:
            self._cache.pop(key, None)
            self._access_times.pop(key, None)

        self._stats.evictions += len(oldest)
        logger.info(f"Cache eviction: removed {len(oldest)} oldest entries")
        return len(oldest)

    def get(self, key: str) -> Any | None:
        """Get a value from the cache.

        Returns:
            The cached value, or None if not found or expired
        """
        namespace_stats = self._namespace(key)

        entry = self._cache.get(key)
        if entry is None:
            self._stats.misses += 1
            namespace_stats.misses += 1
            return None

        value, expires = entry
        if expires is not None and datetime.now() > expires:
            with self._lock:
                self._cache.pop(key, None)
                self._access_times.pop(key, None)
            self._stats.misses += 1
            self._stats.expirations += 1
            namespace_stats.misses += 1
            namespace_stats.expirations += 1
            logger.debug(f"Cache miss (expired): {key}")
            return None

        self._stats.hits += 1
        namespace_stats.hits += 1
        self._access_times[key] = datetime.now()
        return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a value.

        Args:
            key: The cache key
            value: The value to cache
            ttl: Time-to-live in seconds (uses the default if not specified)
        """
        with self._lock:
            if key not in self._cache:
                self._evict_if_needed()

            ttl = ttl if ttl is not None else self._default_ttl
            expires = datetime.now() + timedelta(seconds=ttl) if ttl is not None else None
            self._cache[key] = (value, expires)
            self._access_times[key] = datetime.now()

            self._stats.sets += 1
            self._namespace(key).sets += 1

    def invalidate(self, pattern: str | None = None) -> int:
        """Invalidate entries whose key contains ``pattern``, or everything.

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            if pattern is None:
                count = len(self._cache)
                self._cache.clear()
                self._access_times.clear()
                if count:
                    logger.info(f"Cache cleared: {count} entries")
                return count

            keys = [k for k in self._cache if pattern in k]
            for key in keys:
                del self._cache[key]
                self._access_times.pop(key, None)

            if keys:
                logger.info(f"Cache invalidated: {len(keys)} entries matching '{pattern}'")
            return len(keys)

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._cache)

    @property
    def global_stats(self) -> CacheStats:
        """Global statistics object."""
        return self._stats

    def reset_stats(self) -> None:
        """Reset all statistics to zero."""
        self._stats.reset()
        for stats in self._namespace_stats.values():
            stats.reset()

    def stats(self) -> dict[str, Any]:
        """Return cache statistics including per-namespace counters."""
        return {
            "total_entries": len(self._cache),
            "max_entries": self._max_entries,
            "default_ttl_seconds": self._default_ttl,
            "global": self._stats.to_dict(),
            "by_namespace": {
                namespace: stats.to_dict()
                for namespace, stats in self._namespace_stats.items()
            },
        }


def cache_key_for_scale(table_name: str, scale: float, signature: str | None = None) -> str:
    """Build the memo key for classifying ``scale`` against a named table.

    ``signature`` distinguishes tables that share a name but not their bands;
    the table name stays the statistics namespace.
    """
    if signature:
        return f"level:{table_name}:{signature}:{scale!r}"
    return f"level:{table_name}:{scale!r}"
