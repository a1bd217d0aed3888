"""
Cache module for link data.
Implements Strategy Pattern for flexible cache backends, plus the typed
access layer the link service talks to.
"""

from .strategies import CacheStrategy, RedisCache, InMemoryCache, NullCache
from .factory import CacheFactory, CacheBackend
from .link_cache import CacheFailure, CacheResult, LinkCache

__all__ = [
    "CacheStrategy",
    "RedisCache",
    "InMemoryCache",
    "NullCache",
    "CacheFactory",
    "CacheBackend",
    "CacheFailure",
    "CacheResult",
    "LinkCache",
]
