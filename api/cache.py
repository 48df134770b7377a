"""
Thread-safe bounded LRU cache for computed KPI results.

- Bounds memory usage with a configurable max entry count
- LRU eviction when full, optional TTL per entry
- Keys are tuples whose first element is the batch id, so a replaced
  or cleared batch can drop all of its entries at once
"""
import threading
import logging
from typing import Any, Callable, Dict, Hashable, Optional
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from collections import OrderedDict

from api.config import settings

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """Single cache entry with metadata."""
    value: Any
    created_at: datetime
    expires_at: Optional[datetime]
    access_count: int = 0

    def expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


class BoundedLRUCache:
    """
    Thread-safe LRU cache with bounded size and TTL support.

    Usage:
        cache = BoundedLRUCache(max_size=256, default_ttl_seconds=3600)
        cache.set(("batch-1", "all|*|All"), kpi_set)
        result = cache.get(("batch-1", "all|*|All"))
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl_seconds: Optional[int] = 3600,
        name: str = "default"
    ):
        self.max_size = max(1, max_size)
        self.default_ttl_seconds = default_ttl_seconds
        self.name = name

        self._cache: "OrderedDict[Hashable, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    def get(self, key: Hashable) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.expired(_now()):
                del self._cache[key]
                self._expirations += 1
                self._misses += 1
                return None

            entry.access_count += 1
            self._cache.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl_seconds
            now = _now()
            entry = CacheEntry(
                value=value,
                created_at=now,
                expires_at=now + timedelta(seconds=ttl) if ttl else None,
            )
            if key in self._cache:
                self._cache[key] = entry
                self._cache.move_to_end(key)
                return
            while len(self._cache) >= self.max_size:
                oldest = next(iter(self._cache))
                del self._cache[oldest]
                self._evictions += 1
                logger.debug(f"Cache '{self.name}' evicted: {oldest}")
            self._cache[key] = entry

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def invalidate_batch(self, batch_id: str) -> int:
        """Drop every entry whose key starts with batch_id."""
        with self._lock:
            stale = [k for k in self._cache if isinstance(k, tuple) and k and k[0] == batch_id]
            for key in stale:
                del self._cache[key]
        if stale:
            logger.info(f"Cache '{self.name}': {len(stale)} entries dropped for batch {batch_id}")
        return len(stale)

    def clear(self) -> int:
        with self._lock:
            count = len(self._cache)
            self._cache.clear()
        logger.info(f"Cache '{self.name}' cleared: {count} entries removed")
        return count

    def get_or_set(self, key: Hashable, factory: Callable[[], Any], ttl_seconds: Optional[int] = None) -> Any:
        """Get value from cache, or compute and cache it if missing."""
        value = self.get(key)
        if value is not None:
            return value
        value = factory()
        self.set(key, value, ttl_seconds)
        return value

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            total_requests = self._hits + self._misses
            return {
                'name': self.name,
                'size': len(self._cache),
                'max_size': self.max_size,
                'hits': self._hits,
                'misses': self._misses,
                'hit_rate': round(self._hits / total_requests, 4) if total_requests else 0.0,
                'evictions': self._evictions,
                'expirations': self._expirations,
                'default_ttl_seconds': self.default_ttl_seconds,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        """Check presence without touching LRU order."""
        with self._lock:
            entry = self._cache.get(key)
            return entry is not None and not entry.expired(_now())


kpi_cache = BoundedLRUCache(
    max_size=settings.cache_size,
    default_ttl_seconds=settings.cache_ttl,
    name="kpis",
)


def get_all_cache_stats() -> Dict[str, Dict[str, Any]]:
    return {'kpis': kpi_cache.get_stats()}
