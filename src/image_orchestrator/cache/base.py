"""Abstract base class for cache backends."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CacheEntry:
    """
    A cached value with metadata.

    Attributes:
        key: Cache key
        value: Cached data
        created_at: When the entry was created
        ttl_seconds: Time-to-live in seconds (None = no expiry)
    """

    key: str
    value: Any
    created_at: datetime = field(default_factory=utcnow)
    ttl_seconds: float | None = None

    @property
    def expires_at(self) -> datetime | None:
        """Get expiration time, or None if no TTL."""
        if self.ttl_seconds is None:
            return None
        return self.created_at + timedelta(seconds=self.ttl_seconds)

    def is_expired_at(self, now: datetime) -> bool:
        """Check expiry against a given instant."""
        if self.expires_at is None:
            return False
        return now > self.expires_at

    @property
    def is_expired(self) -> bool:
        """Check if entry has expired."""
        return self.is_expired_at(utcnow())


class CacheBackend(ABC):
    """
    Abstract base class for cache backends.

    Implement this class to add new cache storage backends.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique identifier for this backend.

        Returns:
            Backend name (e.g., 'memory')
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """
        Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if not found/expired
        """
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float | None = None,
    ) -> bool:
        """
        Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl_seconds: Time-to-live in seconds (None = use default)

        Returns:
            True if successful, False otherwise
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete a value from the cache.

        Returns:
            True if deleted, False if not found
        """
        ...

    @abstractmethod
    async def clear(self) -> int:
        """
        Clear all cache entries.

        Returns:
            Number of entries cleared
        """
        ...

    @abstractmethod
    def size(self) -> int:
        """Current number of stored entries, expired or not."""
        ...

    async def close(self) -> None:
        """Release backend resources."""

    async def health_check(self) -> dict[str, Any]:
        """
        Perform a health check on the cache backend.

        Returns:
            Dict with health status info
        """
        return {"backend": self.name, "total_entries": self.size()}
