"""Redis cache backend with the same interface as InMemoryCache."""

import json
from typing import Any

import redis

from ..logging import get_logger, log_cache_operation


class RedisCache:
    """Redis cache tier with per-entry TTL support."""

    def __init__(
        self,
        url: str = "redis://localhost:6379",
        key_prefix: str = "tiered:",
        client: redis.Redis | None = None,
    ):
        """
        Initialize the Redis cache.

        Args:
            url: Redis connection URL
            key_prefix: Prefix for all Redis keys
            client: Pre-built Redis client, or None to create one from ``url``
        """
        self._prefix = key_prefix
        self._url = url
        self._client = client or redis.Redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
        )
        self._logger = get_logger(__name__, backend="redis")
        self._total_hits = 0
        self._total_misses = 0

    def close(self) -> None:
        """Close Redis connection."""
        self._client.close()

    def ping(self) -> bool:
        """Check connectivity. Returns True if Redis answered."""
        try:
            return bool(self._client.ping())
        except redis.RedisError as e:
            self._logger.warning("Failed to reach Redis", url=self._url, error=str(e))
            return False

    def _key(self, key: str) -> str:
        """Generate prefixed Redis key."""
        return f"{self._prefix}{key}"

    def has(self, key: str) -> bool:
        """Check whether ``key`` exists in Redis."""
        if not key:
            return False
        try:
            return bool(self._client.exists(self._key(key)))
        except redis.RedisError as e:
            self._logger.warning("Redis exists failed", key=key, error=str(e))
            return False

    def get(self, key: str) -> Any:
        """Get value from Redis, or None on a miss or backend error."""
        if not key:
            return None
        try:
            data = self._client.get(self._key(key))
        except redis.RedisError as e:
            self._logger.warning("Redis get failed", key=key, error=str(e))
            return None

        if not data:
            self._total_misses += 1
            log_cache_operation(self._logger, "get", key, hit=False)
            return None

        try:
            value = json.loads(data)
        except json.JSONDecodeError as e:
            self._logger.warning("Redis value is not JSON", key=key, error=str(e))
            return None

        self._total_hits += 1
        log_cache_operation(self._logger, "get", key, hit=True)
        return value

    def put(self, key: str, value: Any, ttl: int) -> bool:
        """Set value in Redis with a TTL in seconds (non-positive = no expiry)."""
        if not ttl or ttl <= 0:
            return self.put_forever(key, value)
        if not key:
            return False
        try:
            self._client.setex(self._key(key), ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            self._logger.warning("Redis set failed", key=key, error=str(e))
            return False
        log_cache_operation(self._logger, "put", key, ttl=ttl)
        return True

    def put_forever(self, key: str, value: Any) -> bool:
        """Set value in Redis without expiry."""
        if not key:
            return False
        try:
            self._client.set(self._key(key), json.dumps(value, default=str))
        except redis.RedisError as e:
            self._logger.warning("Redis set failed", key=key, error=str(e))
            return False
        log_cache_operation(self._logger, "put_forever", key)
        return True

    def delete(self, key: str) -> bool:
        """Delete key from Redis."""
        try:
            self._client.delete(self._key(key))
        except redis.RedisError as e:
            self._logger.warning("Redis delete failed", key=key, error=str(e))
            return False
        log_cache_operation(self._logger, "delete", key)
        return True

    def clear(self) -> bool:
        """Clear all keys with our prefix (use with caution)."""
        try:
            for redis_key in self._client.scan_iter(match=f"{self._prefix}*", count=100):
                self._client.delete(redis_key)
        except redis.RedisError as e:
            self._logger.warning("Redis clear failed", error=str(e))
            return False
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        total = self._total_hits + self._total_misses
        stats = {
            "backend": "redis",
            "hit_rate": round(self._total_hits / total, 2) if total > 0 else 0,
            "total_hits": self._total_hits,
            "total_misses": self._total_misses,
        }

        try:
            info = self._client.info("keyspace")
            stats["keys"] = info.get("db0", {}).get("keys", 0)
        except redis.RedisError:
            stats["keys"] = None

        return stats
