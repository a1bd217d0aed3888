"""
Durable link store module.

This module implements the Strategy Pattern for the authoritative link
store; the cache only ever holds disposable copies of what lives here.
"""

from .strategies import LinkStoreStrategy, SQLAlchemyLinkStore, InMemoryLinkStore
from .factory import LinkStoreFactory, StoreBackend

__all__ = [
    "LinkStoreStrategy",
    "SQLAlchemyLinkStore",
    "InMemoryLinkStore",
    "LinkStoreFactory",
    "StoreBackend",
]
