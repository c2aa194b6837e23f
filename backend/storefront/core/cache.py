"""Redis-backed read-through cache for read-mostly pricing data.

The cache is an optimisation only. Every Redis failure is logged and treated
as a miss, so callers always fall back to the database.
"""

import logging

import redis

from storefront.core.config import settings

logger = logging.getLogger(__name__)

_PATTERN_CHARS = ("*", "?", "[")


class Cache:
    """Thin wrapper over a synchronous Redis client.

    A ``Cache(None)`` instance is a null cache: every lookup misses and every
    write is dropped.
    """

    def __init__(self, client: redis.Redis | None):
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def get(self, key: str) -> str | None:
        if self.client is None:
            return None
        try:
            value = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Cache get failed for %s: %s", key, exc)
            return None
        if value is None:
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else str(value)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.client is None:
            return
        try:
            self.client.set(key, value, ex=ttl_seconds)
        except redis.RedisError as exc:
            logger.warning("Cache set failed for %s: %s", key, exc)

    def invalidate(self, key_or_pattern: str) -> int:
        """Delete a key, or every key matching a glob pattern.

        Returns the number of keys removed (0 when the cache is unavailable).
        """
        if self.client is None:
            return 0
        try:
            if any(ch in key_or_pattern for ch in _PATTERN_CHARS):
                keys = list(self.client.scan_iter(match=key_or_pattern))
                if not keys:
                    return 0
                return int(self.client.delete(*keys))
            return int(self.client.delete(key_or_pattern))
        except redis.RedisError as exc:
            logger.warning("Cache invalidate failed for %s: %s", key_or_pattern, exc)
            return 0


_cache: Cache | None = None


def get_cache() -> Cache:
    """Return the process-wide cache, built lazily from settings."""
    global _cache
    if _cache is None:
        if settings.CACHE_ENABLED:
            client = redis.Redis.from_url(
                settings.REDIS_URL,
                socket_timeout=0.5,
                socket_connect_timeout=0.5,
            )
            _cache = Cache(client)
        else:
            _cache = Cache(None)
    return _cache
