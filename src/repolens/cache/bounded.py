"""Bounded TTL cache for analysis reports.

Every set records the key in an access log scored by insertion time, then
trims the log to ``max_entries``. Reads do not refresh a key's position.

The cache is a best-effort accelerator: any store failure is logged at
WARNING and turned into a miss (get) or a no-op (set, delete, clear).
"""

import hashlib
import json
import logging
import time
from typing import Any

from repolens.cache.stores import CacheStore, MemoryStore, RedisStore
from repolens.config import CacheConfig
from repolens.errors import CacheUnavailableError

logger = logging.getLogger(__name__)

ACCESS_LOG_KEY = "report_access_log"
ANALYSIS_PREFIX = "analysis:"
REPORT_PREFIX = "report:"


def analysis_key(repository: str, ref: str | None = None) -> str:
    """Cache key for an analysis result.

    Args:
        repository: Normalized ``owner/name``
        ref: Branch, tag or commit (None means the default branch)

    Returns:
        ``analysis:<first 16 hex chars of sha256(repository@ref)>``
    """
    digest = hashlib.sha256(f"{repository.lower()}@{ref or ''}".encode("utf-8")).hexdigest()
    return f"{ANALYSIS_PREFIX}{digest[:16]}"


def report_key(report_id: str) -> str:
    return f"{REPORT_PREFIX}{report_id}"


class BoundedCache:
    """JSON value cache bounded by an access log.

    Example:
        >>> cache = BoundedCache(MemoryStore(), max_entries=2)
        >>> await cache.set("a", 1); await cache.set("b", 2); await cache.set("c", 3)
        >>> await cache.get("a") is None
        True
    """

    def __init__(
        self,
        store: CacheStore,
        max_entries: int = 10,
        ttl: int = 300,
        key_prefix: str = "",
    ) -> None:
        if max_entries <= 0:
            raise ValueError(f"max_entries must be positive (got {max_entries})")
        self.store = store
        self.max_entries = max_entries
        self.ttl = ttl
        self.key_prefix = key_prefix
        self._last_score = 0.0

    @property
    def log_key(self) -> str:
        return f"{self.key_prefix}{ACCESS_LOG_KEY}"

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _score(self) -> float:
        # Strictly increasing so same-tick inserts keep their order
        score = max(time.time(), self._last_score + 1e-6)
        self._last_score = score
        return score

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Connect the store.

        Returns:
            True if the store is reachable, False if the cache is degraded
        """
        try:
            await self.store.connect()
        except CacheUnavailableError as e:
            logger.warning("Cache unavailable, continuing without cache: %s", e)
            return False
        return True

    async def close(self) -> None:
        try:
            await self.store.close()
        except CacheUnavailableError as e:
            logger.warning("Error closing cache store: %s", e)

    async def ping(self) -> bool:
        return await self.store.ping()

    # =========================================================================
    # Operations
    # =========================================================================

    async def get(self, key: str) -> Any | None:
        """Return the decoded value, or None on a miss or outage."""
        try:
            raw = await self.store.get(self._key(key))
        except CacheUnavailableError as e:
            logger.warning("Cache get failed for %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Discarding corrupt cache entry %s: %s", key, e)
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON-serializable value, then trim the access log.

        Raises:
            TypeError: If the value is not JSON-serializable
        """
        payload = json.dumps(value)
        try:
            await self.store.set(
                self._key(key), payload, ttl or self.ttl, self.log_key, self._score()
            )
            await self._trim()
        except CacheUnavailableError as e:
            logger.warning("Cache set failed for %s: %s", key, e)

    async def delete(self, key: str) -> None:
        try:
            await self.store.delete([self._key(key)], self.log_key)
        except CacheUnavailableError as e:
            logger.warning("Cache delete failed for %s: %s", key, e)

    async def clear(self) -> None:
        try:
            await self.store.clear(self.key_prefix, self.log_key)
        except CacheUnavailableError as e:
            logger.warning("Cache clear failed: %s", e)

    async def _trim(self) -> None:
        stale = await self.store.oldest(self.log_key, self.max_entries)
        if stale:
            logger.debug("Evicting %d cache entries", len(stale))
            await self.store.delete(stale, self.log_key)


def create_cache(config: CacheConfig) -> BoundedCache | None:
    """Build a BoundedCache from configuration.

    Returns:
        BoundedCache, or None when caching is disabled
    """
    if not config.enabled:
        return None
    store: CacheStore = RedisStore(config.url) if config.backend == "redis" else MemoryStore()
    return BoundedCache(
        store,
        max_entries=config.max_entries,
        ttl=config.ttl,
        key_prefix=config.key_prefix,
    )
