"""Cache backing stores.

A store keeps string values with a TTL plus an access log: a sorted set of
keys scored by insertion time. BoundedCache uses the log to evict the oldest
entries. Stores raise CacheUnavailableError on backend failures; they never
decide what an outage means for the caller.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from repolens.errors import CacheUnavailableError

logger = logging.getLogger(__name__)


class CacheStore(ABC):
    """Abstract key-value store with TTL and a scored access log."""

    name: str = ""

    async def connect(self) -> None:
        """Open connections (no-op by default)."""

    async def close(self) -> None:
        """Release connections (no-op by default)."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value for ``key``, or None if absent or expired."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int, log_key: str, score: float) -> None:
        """Store ``value`` with a TTL and record ``key`` in the access log."""
        pass

    @abstractmethod
    async def delete(self, keys: list[str], log_key: str) -> None:
        """Delete keys from the value space and the access log in one step."""
        pass

    @abstractmethod
    async def oldest(self, log_key: str, keep: int) -> list[str]:
        """Keys in the access log beyond the newest ``keep`` entries, oldest first."""
        pass

    @abstractmethod
    async def clear(self, prefix: str, log_key: str) -> None:
        """Remove every key under ``prefix`` and the access log."""
        pass

    async def ping(self) -> bool:
        return True


class MemoryStore(CacheStore):
    """In-process store guarded by an asyncio.Lock.

    Expiry uses the monotonic clock; access-log scores are whatever the
    caller supplies (wall-clock insertion time).
    """

    name = "memory"

    def __init__(self) -> None:
        self._values: dict[str, tuple[str, float]] = {}
        self._logs: dict[str, dict[str, float]] = {}
        self._lock = asyncio.Lock()

    def _expired(self, key: str, now: float) -> bool:
        entry = self._values.get(key)
        return entry is not None and entry[1] <= now

    async def get(self, key: str) -> str | None:
        async with self._lock:
            now = time.monotonic()
            if self._expired(key, now):
                del self._values[key]
            entry = self._values.get(key)
            return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: int, log_key: str, score: float) -> None:
        async with self._lock:
            self._values[key] = (value, time.monotonic() + ttl)
            self._logs.setdefault(log_key, {})[key] = score

    async def delete(self, keys: list[str], log_key: str) -> None:
        async with self._lock:
            log = self._logs.get(log_key, {})
            for key in keys:
                self._values.pop(key, None)
                log.pop(key, None)

    async def oldest(self, log_key: str, keep: int) -> list[str]:
        async with self._lock:
            log = self._logs.get(log_key, {})
            ordered = sorted(log, key=lambda k: (log[k], k))
            excess = len(ordered) - keep
            return ordered[:excess] if excess > 0 else []

    async def clear(self, prefix: str, log_key: str) -> None:
        async with self._lock:
            for key in [k for k in self._values if k.startswith(prefix)]:
                del self._values[key]
            self._logs.pop(log_key, None)

    def __len__(self) -> int:
        return len(self._values)


class RedisStore(CacheStore):
    """Redis-backed store using SETEX for values and a sorted set for the log."""

    name = "redis"

    def __init__(self, url: str, client: aioredis.Redis | None = None) -> None:
        self.url = url
        self._client = client

    @property
    def client(self) -> aioredis.Redis:
        if self._client is None:
            raise CacheUnavailableError("Redis store is not connected")
        return self._client

    async def connect(self) -> None:
        if self._client is None:
            self._client = aioredis.from_url(self.url, decode_responses=True)
        try:
            await self._client.ping()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cannot reach Redis at {self.url}: {e}") from e
        logger.info("Connected to Redis cache at %s", self.url)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError, CacheUnavailableError):
            return False

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"GET {key} failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int, log_key: str, score: float) -> None:
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.setex(key, ttl, value)
                pipe.zadd(log_key, {key: score})
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"SET {key} failed: {e}") from e

    async def delete(self, keys: list[str], log_key: str) -> None:
        if not keys:
            return
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(*keys)
                pipe.zrem(log_key, *keys)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"DEL failed: {e}") from e

    async def oldest(self, log_key: str, keep: int) -> list[str]:
        try:
            count = await self.client.zcard(log_key)
            if count <= keep:
                return []
            return list(await self.client.zrange(log_key, 0, count - keep - 1))
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"ZRANGE {log_key} failed: {e}") from e

    async def clear(self, prefix: str, log_key: str) -> None:
        try:
            keys = [key async for key in self.client.scan_iter(match=f"{prefix}*")]
            async with self.client.pipeline(transaction=True) as pipe:
                if keys:
                    pipe.delete(*keys)
                pipe.delete(log_key)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Clear failed: {e}") from e
