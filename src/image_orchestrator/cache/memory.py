"""In-memory cache backend implementation."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from image_orchestrator.cache.base import CacheBackend, CacheEntry, utcnow

logger = logging.getLogger(__name__)


class InMemoryCache(CacheBackend):
    """
    In-memory cache backend using an insertion-ordered dictionary.

    Expired entries are swept on every write. When the entry count exceeds
    ``max_size`` the oldest entries are evicted first.

    Limitations:
    - Not shared across instances
    - Lost on restart
    """

    def __init__(
        self,
        default_ttl_seconds: float | None = 3600,
        max_size: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize in-memory cache.

        Args:
            default_ttl_seconds: Default TTL for cache entries (None = no expiry)
            max_size: Maximum number of entries (None = unlimited)
            clock: Source of the current UTC time (injectable for tests)
        """
        if max_size is not None and max_size < 1:
            raise ValueError("max_size must be at least 1")

        # Dict order is creation order: keys are popped before re-insert.
        self._store: dict[str, CacheEntry] = {}
        self._default_ttl = default_ttl_seconds
        self._max_size = max_size
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return "memory"

    @property
    def max_size(self) -> int | None:
        return self._max_size

    async def get(self, key: str) -> Any | None:
        """Get a value from the cache."""
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            if entry.is_expired_at(self._clock()):
                del self._store[key]
                return None

            return entry.value

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
    ) -> bool:
        """Set a value in the cache."""
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl

        async with self._lock:
            now = self._clock()
            self._store.pop(key, None)
            self._store[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                ttl_seconds=ttl,
            )
            self._sweep_expired_unlocked(now)
            self._evict_overflow_unlocked()
            return True

    async def delete(self, key: str) -> bool:
        """Delete a value from the cache."""
        async with self._lock:
            if key in self._store:
                del self._store[key]
                return True
            return False

    async def clear(self) -> int:
        """Clear all entries."""
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    def _sweep_expired_unlocked(self, now: datetime) -> int:
        """Remove expired entries (caller must hold lock)."""
        expired_keys = [k for k, v in self._store.items() if v.is_expired_at(now)]
        for key in expired_keys:
            del self._store[key]

        if expired_keys:
            logger.debug(f"Swept {len(expired_keys)} expired cache entries")

        return len(expired_keys)

    def _evict_overflow_unlocked(self) -> int:
        """Evict oldest entries beyond max_size (caller must hold lock)."""
        if self._max_size is None:
            return 0

        evicted = 0
        while len(self._store) > self._max_size:
            oldest_key = next(iter(self._store))
            del self._store[oldest_key]
            evicted += 1

        if evicted:
            logger.debug(f"Evicted {evicted} oldest cache entries (max {self._max_size})")

        return evicted

    async def cleanup_expired(self) -> int:
        """Remove all expired entries."""
        async with self._lock:
            return self._sweep_expired_unlocked(self._clock())

    def keys(self) -> list[str]:
        """Stored keys, oldest first."""
        return list(self._store)

    async def health_check(self) -> dict[str, Any]:
        """Return health status with cache statistics."""
        async with self._lock:
            now = self._clock()
            total_entries = len(self._store)
            expired_entries = sum(1 for v in self._store.values() if v.is_expired_at(now))

        return {
            "backend": self.name,
            "total_entries": total_entries,
            "expired_entries": expired_entries,
            "max_size": self._max_size,
        }

    def size(self) -> int:
        """Get current number of entries (sync method for convenience)."""
        return len(self._store)
