"""
Cache strategies using Strategy Pattern.
Allows switching between different key-value backends (Redis, In-Memory, Null).

Strategies raise CacheUnavailableError when the backend fails; turning that
into "not cached" is the job of the cache access layer (LinkCache).
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple
import time

import redis
from redis import asyncio as aioredis

from linkcache_app.exceptions import CacheUnavailableError


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    This is the Strategy Pattern interface - allows multiple cache implementations
    without changing the service layer code.

    All methods are async because cache operations involve I/O (network for Redis).
    Every entry carries a TTL; expiry is the only eviction mechanism.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Get value from cache.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> bool:
        """
        Set value in cache with TTL (Time To Live), overwriting any previous value.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time to live in seconds

        Returns:
            True if successful
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """
        Delete key from cache.

        Args:
            key: Cache key

        Returns:
            True if deleted, False if key didn't exist
        """
        pass

    @abstractmethod
    async def incr(self, key: str, amount: int = 1) -> int:
        """
        Atomically add ``amount`` to an integer key (missing keys count as 0).

        Args:
            key: Cache key
            amount: Increment, may be negative

        Returns:
            The value after the increment
        """
        pass

    @abstractmethod
    async def expire(self, key: str, ttl: int) -> bool:
        """
        Reset the TTL of an existing key.

        Returns:
            True if the key exists and its TTL was updated
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists in cache"""
        pass

    @abstractmethod
    async def clear(self) -> bool:
        """
        Clear all cache entries.

        Returns:
            True if successful
        """
        pass

    async def info(self) -> Dict[str, Any]:
        """Backend description for diagnostics"""
        return {"backend": type(self).__name__}

    async def close(self) -> None:
        """Release backend resources (no-op by default)"""
        return None


class RedisCache(CacheStrategy):
    """
    Redis cache implementation on top of ``redis.asyncio``.

    Production-ready cache with:
    - Distributed caching (multiple servers can share cache)
    - Atomic INCRBY for visit counters
    - TTL support
    - Non-blocking I/O

    The client connects lazily on the first command and keeps its
    connections in a pool, so one instance is reused for the process lifetime.
    """

    def __init__(self, redis_client: aioredis.Redis):
        """
        Initialize Redis cache.

        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
        """
        self.redis = redis_client

    @classmethod
    def from_url(cls, url: str, socket_timeout: float = 2.0) -> "RedisCache":
        """Build a cache whose client connects on first use"""
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis.get(key)
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis get failed for {key}", original_error=e) from e

    async def set(self, key: str, value: str, ttl: int) -> bool:
        try:
            return bool(await self.redis.set(key, value, ex=ttl))
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis set failed for {key}", original_error=e) from e

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(key))
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis delete failed for {key}", original_error=e) from e

    async def incr(self, key: str, amount: int = 1) -> int:
        try:
            return int(await self.redis.incrby(key, amount))
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis incr failed for {key}", original_error=e) from e

    async def expire(self, key: str, ttl: int) -> bool:
        try:
            return bool(await self.redis.expire(key, ttl))
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis expire failed for {key}", original_error=e) from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.redis.exists(key))
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError(f"Redis exists failed for {key}", original_error=e) from e

    async def clear(self) -> bool:
        """Clear all Redis keys (use with caution!)"""
        try:
            await self.redis.flushdb()
            return True
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError("Redis flushdb failed", original_error=e) from e

    async def info(self) -> Dict[str, Any]:
        try:
            server = await self.redis.info()
        except (redis.RedisError, OSError) as e:
            raise CacheUnavailableError("Redis info failed", original_error=e) from e
        return {
            "backend": "redis",
            "redis_version": server.get("redis_version"),
            "used_memory_human": server.get("used_memory_human"),
            "connected_clients": server.get("connected_clients"),
            "total_commands_processed": server.get("total_commands_processed"),
        }

    async def close(self) -> None:
        await self.redis.aclose()


class InMemoryCache(CacheStrategy):
    """
    In-memory cache implementation using Python dict.

    Pros:
    - Very fast (no network overhead)
    - Simple (no external dependencies)
    - Good for development and testing

    Cons:
    - Not distributed (each server has its own cache)
    - Lost on restart

    TTLs are enforced lazily: an expired key is dropped the next time it is
    touched. The clock is injectable so tests can move time forward.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        """Initialize in-memory cache"""
        self._cache: Dict[str, Tuple[str, Optional[float]]] = {}
        self._clock = clock

    def _live_entry(self, key: str) -> Optional[Tuple[str, Optional[float]]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        _, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._cache[key]
            return None
        return entry

    async def get(self, key: str) -> Optional[str]:
        entry = self._live_entry(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: int) -> bool:
        self._cache[key] = (value, self._clock() + ttl)
        return True

    async def delete(self, key: str) -> bool:
        if self._live_entry(key) is None:
            return False
        del self._cache[key]
        return True

    async def incr(self, key: str, amount: int = 1) -> int:
        # No await between read and write, so this is atomic on the event loop
        entry = self._live_entry(key)
        if entry is None:
            value, expires_at = 0, None
        else:
            try:
                value = int(entry[0])
            except ValueError as e:
                raise CacheUnavailableError(f"Value at {key} is not an integer", original_error=e) from e
            expires_at = entry[1]
        value += amount
        self._cache[key] = (str(value), expires_at)
        return value

    async def expire(self, key: str, ttl: int) -> bool:
        entry = self._live_entry(key)
        if entry is None:
            return False
        self._cache[key] = (entry[0], self._clock() + ttl)
        return True

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None

    async def clear(self) -> bool:
        self._cache.clear()
        return True

    async def info(self) -> Dict[str, Any]:
        live = [key for key in list(self._cache) if self._live_entry(key) is not None]
        return {"backend": "memory", "keys": len(live)}


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    Used for:
    - Testing (when you want to test without cache)
    - Disabling cache in certain environments

    Reads always miss; writes succeed without storing anything.
    """

    async def get(self, key: str) -> Optional[str]:
        """Always returns None (cache miss)"""
        return None

    async def set(self, key: str, value: str, ttl: int) -> bool:
        return True

    async def delete(self, key: str) -> bool:
        return True

    async def incr(self, key: str, amount: int = 1) -> int:
        """Nothing accumulates, so the running total is just this increment"""
        return amount

    async def expire(self, key: str, ttl: int) -> bool:
        return False

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True

    async def info(self) -> Dict[str, Any]:
        return {"backend": "null"}
