"""
Factory for creating cache instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
import logging
from typing import Optional

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from linkcache_app.config import settings

logger = logging.getLogger(__name__)


class CacheBackend(Enum):
    """Available cache backends"""
    REDIS = "redis"
    MEMORY = "memory"
    NULL = "null"


class CacheFactory:
    """
    Simple factory for creating cache instances.

    Uses Singleton Pattern - creates instance once, reuses it, so the Redis
    connection pool is shared by every caller in the process.
    Gets configuration from settings (not passed as parameters).
    """

    _instance: Optional[CacheStrategy] = None  # Single cached instance

    @classmethod
    def create(cls, backend: CacheBackend) -> CacheStrategy:
        """
        Create or return cached cache instance.

        Args:
            backend: Type of cache backend (from enum)

        Returns:
            Singleton cache instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == CacheBackend.REDIS:
            # No ping here: the client connects on first use, and a Redis
            # outage only degrades reads to cache misses.
            cls._instance = RedisCache.from_url(
                settings.redis_url,
                socket_timeout=settings.redis_socket_timeout,
            )
            logger.info("Redis cache configured for %s", settings.redis_url)

        elif backend == CacheBackend.MEMORY:
            cls._instance = InMemoryCache()
            logger.info("In-memory cache initialized")

        elif backend == CacheBackend.NULL:
            cls._instance = NullCache()
            logger.info("Null cache initialized")

        else:
            raise ValueError(f"Unknown cache backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
