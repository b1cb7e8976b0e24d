"""Bounded TTL cache for analysis reports."""

from repolens.cache.bounded import (
    ACCESS_LOG_KEY,
    BoundedCache,
    analysis_key,
    create_cache,
    report_key,
)
from repolens.cache.stores import CacheStore, MemoryStore, RedisStore

__all__ = [
    "ACCESS_LOG_KEY",
    "BoundedCache",
    "CacheStore",
    "MemoryStore",
    "RedisStore",
    "analysis_key",
    "create_cache",
    "report_key",
]
