"""Tests for cache backends and the word-keyed result cache."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import FakeDatetimeClock
from image_orchestrator.cache.base import CacheEntry
from image_orchestrator.cache.images import ResultCache
from image_orchestrator.cache.memory import InMemoryCache
from image_orchestrator.models import AcquiredImage


class TestCacheEntry:
    """Tests for CacheEntry dataclass."""

    def test_expires_at_with_ttl(self) -> None:
        """Test expires_at calculation with TTL."""
        entry = CacheEntry(
            key="test",
            value="data",
            created_at=datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            ttl_seconds=3600,
        )
        expected = datetime(2025, 1, 1, 13, 0, 0, tzinfo=timezone.utc)
        assert entry.expires_at == expected

    def test_expires_at_without_ttl(self) -> None:
        """Test expires_at returns None without TTL."""
        entry = CacheEntry(key="test", value="data", ttl_seconds=None)
        assert entry.expires_at is None
        assert entry.is_expired is False

    def test_is_expired_true(self) -> None:
        entry = CacheEntry(
            key="test",
            value="data",
            created_at=datetime.now(timezone.utc) - timedelta(hours=2),
            ttl_seconds=3600,
        )
        assert entry.is_expired is True

    def test_is_expired_false(self) -> None:
        entry = CacheEntry(key="test", value="data", ttl_seconds=3600)
        assert entry.is_expired is False


class TestInMemoryCache:
    """Tests for InMemoryCache backend."""

    @pytest.fixture
    def cache(self, datetime_clock: FakeDatetimeClock) -> InMemoryCache:
        """Create a test cache instance."""
        return InMemoryCache(default_ttl_seconds=60, max_size=3, clock=datetime_clock)

    def test_name(self, cache: InMemoryCache) -> None:
        assert cache.name == "memory"

    def test_invalid_max_size(self) -> None:
        with pytest.raises(ValueError):
            InMemoryCache(max_size=0)

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: InMemoryCache) -> None:
        await cache.set("key1", "value1")
        assert await cache.get("key1") == "value1"

    @pytest.mark.asyncio
    async def test_get_missing_key(self, cache: InMemoryCache) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_expired_entry_never_returned(
        self, cache: InMemoryCache, datetime_clock: FakeDatetimeClock
    ) -> None:
        """Entries older than the TTL are misses."""
        await cache.set("key1", "value1")

        datetime_clock.advance(seconds=60)
        assert await cache.get("key1") == "value1"

        datetime_clock.advance(seconds=1)
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_write_sweeps_expired(
        self, cache: InMemoryCache, datetime_clock: FakeDatetimeClock
    ) -> None:
        """Every write lazily removes expired entries."""
        await cache.set("old1", 1)
        await cache.set("old2", 2)
        datetime_clock.advance(seconds=120)

        await cache.set("new", 3)

        assert cache.size() == 1
        assert cache.keys() == ["new"]

    @pytest.mark.asyncio
    async def test_hard_cap_evicts_oldest_first(
        self, cache: InMemoryCache, datetime_clock: FakeDatetimeClock
    ) -> None:
        """Inserting N > cap entries leaves exactly cap, oldest evicted."""
        for i in range(7):
            await cache.set(f"key{i}", i)
            datetime_clock.advance(seconds=1)

        assert cache.size() == 3
        assert cache.keys() == ["key4", "key5", "key6"]
        assert await cache.get("key0") is None
        assert await cache.get("key6") == 6

    @pytest.mark.asyncio
    async def test_overwrite_moves_entry_to_newest(self, cache: InMemoryCache) -> None:
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.set("c", 3)
        await cache.set("a", 10)
        await cache.set("d", 4)

        assert cache.keys() == ["c", "a", "d"]
        assert await cache.get("a") == 10

    @pytest.mark.asyncio
    async def test_delete(self, cache: InMemoryCache) -> None:
        await cache.set("key1", "value1")
        assert await cache.delete("key1") is True
        assert await cache.delete("key1") is False
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_clear(self, cache: InMemoryCache) -> None:
        await cache.set("key1", "value1")
        await cache.set("key2", "value2")

        assert await cache.clear() == 2
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_cleanup_expired(
        self, cache: InMemoryCache, datetime_clock: FakeDatetimeClock
    ) -> None:
        await cache.set("key1", "value1")
        datetime_clock.advance(minutes=5)

        assert await cache.cleanup_expired() == 1
        assert cache.size() == 0

    @pytest.mark.asyncio
    async def test_health_check(
        self, cache: InMemoryCache, datetime_clock: FakeDatetimeClock
    ) -> None:
        await cache.set("key1", "value1")
        await cache.set("key2", "value2", ttl_seconds=1)
        datetime_clock.advance(seconds=2)

        health = await cache.health_check()
        assert health == {
            "backend": "memory",
            "total_entries": 2,
            "expired_entries": 1,
            "max_size": 3,
        }

    @pytest.mark.asyncio
    async def test_concurrent_writers(self) -> None:
        """Concurrent writes never push the size past the cap."""
        cache = InMemoryCache(max_size=10)
        await asyncio.gather(*(cache.set(f"k{i}", i) for i in range(100)))
        assert cache.size() == 10


class TestResultCache:
    """Tests for the word-keyed ResultCache."""

    @pytest.fixture
    def image(self) -> AcquiredImage:
        return AcquiredImage(
            word="dog",
            image_data="data:image/png;base64,iVBORw0KGgo=",
            source_provider="unsplash",
        )

    @pytest.mark.asyncio
    async def test_keys_are_case_insensitive(self, image: AcquiredImage) -> None:
        cache = ResultCache()
        await cache.put("  Dog ", image)

        hit = await cache.get("DOG")
        assert hit is not None
        assert hit.word == "dog"
        assert hit.image_data == image.image_data
        assert hit.source_provider == "unsplash"
        assert hit.cached is True

    @pytest.mark.asyncio
    async def test_miss(self) -> None:
        assert await ResultCache().get("cat") is None

    @pytest.mark.asyncio
    async def test_ttl_and_cap_from_constructor(
        self, image: AcquiredImage, datetime_clock: FakeDatetimeClock
    ) -> None:
        backend = InMemoryCache(default_ttl_seconds=None, max_size=2, clock=datetime_clock)
        cache = ResultCache(backend=backend, ttl_seconds=10)

        await cache.put("dog", image)
        datetime_clock.advance(seconds=11)
        assert await cache.get("dog") is None

        for word in ("a", "b", "c"):
            await cache.put(word, image)
        assert cache.size() == 2

    @pytest.mark.asyncio
    async def test_stats(self, image: AcquiredImage) -> None:
        cache = ResultCache(max_entries=5)
        await cache.put("dog", image)

        stats = await cache.stats()
        assert stats["total_entries"] == 1
        assert stats["max_size"] == 5
