"""
Factory for creating link store instances.
Simple, clean factory with singleton caching.
"""

from enum import Enum
import logging
from typing import Optional

from .strategies import LinkStoreStrategy, SQLAlchemyLinkStore, InMemoryLinkStore
from linkcache_app.database.connection import Base, SessionLocal, engine

logger = logging.getLogger(__name__)


class StoreBackend(Enum):
    """Available link store backends"""
    SQLALCHEMY = "sqlalchemy"
    MEMORY = "memory"


class LinkStoreFactory:
    """
    Simple factory for creating link store instances.

    Gets configuration from settings (through the database connection module).
    """

    _instance: Optional[LinkStoreStrategy] = None  # Single cached instance

    @classmethod
    def create(cls, backend: StoreBackend) -> LinkStoreStrategy:
        """
        Create or return cached link store instance.

        Args:
            backend: Type of store backend (from enum)

        Returns:
            Singleton link store instance
        """
        if cls._instance is not None:
            return cls._instance

        if backend == StoreBackend.SQLALCHEMY:
            # Import models so they're registered with Base before create_all
            import linkcache_app.models  # noqa: F401

            Base.metadata.create_all(bind=engine)
            cls._instance = SQLAlchemyLinkStore(SessionLocal)
            logger.info("SQLAlchemy link store initialized (%s)", engine.url)

        elif backend == StoreBackend.MEMORY:
            cls._instance = InMemoryLinkStore()
            logger.info("In-memory link store initialized")

        else:
            raise ValueError(f"Unknown store backend: {backend}")

        return cls._instance

    @classmethod
    def clear_instance(cls):
        """Clear cached instance (for testing)"""
        cls._instance = None
