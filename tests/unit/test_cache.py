"""Unit tests for the bounded analysis cache."""

import asyncio

import pytest

from repolens.cache import (
    ACCESS_LOG_KEY,
    BoundedCache,
    CacheStore,
    MemoryStore,
    RedisStore,
    analysis_key,
    create_cache,
    report_key,
)
from repolens.config import CacheConfig
from repolens.errors import CacheUnavailableError


class FailingStore(CacheStore):
    """Store whose every operation fails like an unreachable server."""

    async def connect(self) -> None:
        raise CacheUnavailableError("connection refused")

    async def get(self, key: str) -> str | None:
        raise CacheUnavailableError("connection refused")

    async def set(self, key: str, value: str, ttl: int, log_key: str, score: float) -> None:
        raise CacheUnavailableError("connection refused")

    async def delete(self, keys: list[str], log_key: str) -> None:
        raise CacheUnavailableError("connection refused")

    async def oldest(self, log_key: str, keep: int) -> list[str]:
        raise CacheUnavailableError("connection refused")

    async def clear(self, prefix: str, log_key: str) -> None:
        raise CacheUnavailableError("connection refused")

    async def ping(self) -> bool:
        return False


class TestCacheKeys:
    """Tests for cache key derivation."""

    def test_analysis_key_shape(self) -> None:
        """Test the key is a prefix plus 16 hex characters."""
        key = analysis_key("octocat/hello")

        assert key.startswith("analysis:")
        assert len(key.removeprefix("analysis:")) == 16
        int(key.removeprefix("analysis:"), 16)

    def test_analysis_key_is_case_insensitive(self) -> None:
        """Test URL spellings of one repository share a key."""
        assert analysis_key("Octocat/Hello") == analysis_key("octocat/hello")

    def test_analysis_key_depends_on_ref(self) -> None:
        """Test refs produce distinct keys."""
        assert analysis_key("o/r", "main") != analysis_key("o/r", "dev")
        assert analysis_key("o/r") == analysis_key("o/r", None)

    def test_report_key(self) -> None:
        """Test report ids live in their own key space."""
        assert report_key("o-r-1") == "report:o-r-1"


class TestBoundedCache:
    """Tests for BoundedCache over the in-memory store."""

    def test_set_and_get(self) -> None:
        """Test JSON values round-trip through the store."""

        async def scenario():
            cache = BoundedCache(MemoryStore())
            await cache.set("a", {"n": 1, "items": [1, 2]})
            return await cache.get("a")

        assert asyncio.run(scenario()) == {"n": 1, "items": [1, 2]}

    def test_miss_returns_none(self) -> None:
        """Test an unknown key is a miss."""
        assert asyncio.run(BoundedCache(MemoryStore()).get("missing")) is None

    def test_evicts_oldest_beyond_max_entries(self) -> None:
        """Test max_entries=2 keeps only the two newest keys."""

        async def scenario():
            cache = BoundedCache(MemoryStore(), max_entries=2)
            await cache.set("a", 1)
            await cache.set("b", 2)
            await cache.set("c", 3)
            return [await cache.get(k) for k in ("a", "b", "c")]

        assert asyncio.run(scenario()) == [None, 2, 3]

    def test_reads_do_not_refresh_position(self) -> None:
        """Test eviction follows insertion order, not access order."""

        async def scenario():
            cache = BoundedCache(MemoryStore(), max_entries=2)
            await cache.set("a", 1)
            await cache.set("b", 2)
            await cache.get("a")
            await cache.set("c", 3)
            return await cache.get("a")

        assert asyncio.run(scenario()) is None

    def test_overwrite_does_not_grow_log(self) -> None:
        """Test re-setting a key keeps one log entry."""

        async def scenario():
            store = MemoryStore()
            cache = BoundedCache(store, max_entries=2)
            await cache.set("a", 1)
            await cache.set("a", 2)
            await cache.set("b", 3)
            return await cache.get("a"), len(store)

        assert asyncio.run(scenario()) == (2, 2)

    def test_ttl_expiry(self) -> None:
        """Test entries disappear after their TTL."""

        async def scenario():
            cache = BoundedCache(MemoryStore(), ttl=1)
            await cache.set("a", 1)
            await asyncio.sleep(1.1)
            return await cache.get("a")

        assert asyncio.run(scenario()) is None

    def test_key_prefix(self) -> None:
        """Test keys and the access log carry the prefix."""

        async def scenario():
            store = MemoryStore()
            cache = BoundedCache(store, key_prefix="test:")
            await cache.set("a", 1)
            return await store.get("test:a"), cache.log_key

        raw, log_key = asyncio.run(scenario())
        assert raw == "1"
        assert log_key == f"test:{ACCESS_LOG_KEY}"

    def test_delete_and_clear(self) -> None:
        """Test explicit removal."""

        async def scenario():
            cache = BoundedCache(MemoryStore())
            await cache.set("a", 1)
            await cache.set("b", 2)
            await cache.delete("a")
            after_delete = await cache.get("a")
            await cache.clear()
            return after_delete, await cache.get("b")

        assert asyncio.run(scenario()) == (None, None)

    def test_corrupt_entry_is_a_miss(self) -> None:
        """Test undecodable payloads are discarded."""

        async def scenario():
            store = MemoryStore()
            cache = BoundedCache(store)
            await store.set("bad", "{not json", 60, cache.log_key, 1.0)
            value = await cache.get("bad")
            return value, await store.get("bad")

        assert asyncio.run(scenario()) == (None, None)

    def test_unserializable_value_raises(self) -> None:
        """Test non-JSON values are rejected before touching the store."""
        cache = BoundedCache(MemoryStore())

        with pytest.raises(TypeError):
            asyncio.run(cache.set("a", object()))

    def test_invalid_max_entries(self) -> None:
        """Test max_entries must be positive."""
        with pytest.raises(ValueError, match="max_entries"):
            BoundedCache(MemoryStore(), max_entries=0)


class TestUnavailableStore:
    """Tests for degraded operation when the store is unreachable."""

    def test_operations_degrade(self) -> None:
        """Test connect reports False and operations become misses/no-ops."""

        async def scenario():
            cache = BoundedCache(FailingStore())
            connected = await cache.connect()
            await cache.set("a", 1)
            value = await cache.get("a")
            await cache.delete("a")
            await cache.clear()
            return connected, value

        connected, value = asyncio.run(scenario())

        assert connected is False
        assert value is None

    def test_redis_store_requires_connect(self) -> None:
        """Test using a RedisStore before connect() is a cache outage."""
        store = RedisStore("redis://localhost:6379/0")

        with pytest.raises(CacheUnavailableError):
            _ = store.client


class TestCreateCache:
    """Tests for create_cache()."""

    def test_disabled(self) -> None:
        """Test a disabled cache builds nothing."""
        assert create_cache(CacheConfig(enabled=False)) is None

    def test_memory_backend(self) -> None:
        """Test the memory backend and configured bounds."""
        cache = create_cache(CacheConfig(backend="memory", max_entries=3, ttl=30))

        assert cache is not None
        assert isinstance(cache.store, MemoryStore)
        assert cache.max_entries == 3
        assert cache.ttl == 30

    def test_redis_backend(self) -> None:
        """Test the redis backend is selected without connecting."""
        cache = create_cache(CacheConfig(backend="redis", url="redis://cache:6379/1"))

        assert cache is not None
        assert isinstance(cache.store, RedisStore)
        assert cache.store.url == "redis://cache:6379/1"
