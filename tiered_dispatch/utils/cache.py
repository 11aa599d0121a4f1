"""
Cache utilities for tiered-dispatch.

This module defines the cache tier interface and an in-process
implementation with per-entry lifetimes.
"""

import math
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from cachetools import TLRUCache

from ..logging import get_logger, log_cache_operation


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for cache tier implementations."""

    def has(self, key: str) -> bool: ...
    def get(self, key: str) -> Any: ...
    def put(self, key: str, value: Any, ttl: int) -> bool: ...
    def put_forever(self, key: str, value: Any) -> bool: ...
    def delete(self, key: str) -> bool: ...


def _entry_expiry(_key: str, entry: tuple[Any, float | None], now: float) -> float:
    _, ttl = entry
    if ttl is None:
        return math.inf
    return now + ttl


class InMemoryCache:
    """Thread-safe in-process cache with per-entry TTL and LRU eviction."""

    def __init__(self, maxsize: int = 1000, timer: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            maxsize: Maximum number of entries before LRU eviction
            timer: Clock used for expiry (monotonic seconds)
        """
        self.maxsize = maxsize
        self._cache: TLRUCache = TLRUCache(maxsize=maxsize, ttu=_entry_expiry, timer=timer)
        self._lock = threading.RLock()
        self._logger = get_logger(__name__, backend="memory")
        self._hits = 0
        self._misses = 0

    def has(self, key: str) -> bool:
        """Check whether a live entry exists for ``key``."""
        if not key:
            return False
        with self._lock:
            return key in self._cache

    def get(self, key: str) -> Any:
        """
        Get a value from the cache.

        Args:
            key: Cache key

        Returns:
            Cached value, or None if not found or expired
        """
        if not key:
            return None
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                log_cache_operation(self._logger, "get", key, hit=False)
                return None
            self._hits += 1
        log_cache_operation(self._logger, "get", key, hit=True)
        return entry[0]

    def put(self, key: str, value: Any, ttl: int) -> bool:
        """
        Store a value for ``ttl`` seconds.

        A non-positive ``ttl`` stores the value without expiry.

        Returns:
            True if stored, False for an empty key
        """
        if not key:
            return False
        with self._lock:
            self._cache[key] = (value, ttl if ttl and ttl > 0 else None)
        log_cache_operation(self._logger, "put", key, ttl=ttl)
        return True

    def put_forever(self, key: str, value: Any) -> bool:
        """Store a value without expiry."""
        if not key:
            return False
        with self._lock:
            self._cache[key] = (value, None)
        log_cache_operation(self._logger, "put_forever", key)
        return True

    def delete(self, key: str) -> bool:
        """Remove an entry. Deleting a missing key succeeds."""
        with self._lock:
            self._cache.pop(key, None)
        log_cache_operation(self._logger, "delete", key)
        return True

    def clear(self) -> bool:
        """Remove every entry."""
        with self._lock:
            self._cache.clear()
        self._logger.debug("Cleared all cache entries")
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            self._cache.expire()
            total = self._hits + self._misses
            return {
                "backend": "memory",
                "size": len(self._cache),
                "maxsize": self.maxsize,
                "hit_rate": round(self._hits / total, 2) if total > 0 else 0,
                "total_hits": self._hits,
                "total_misses": self._misses,
            }
