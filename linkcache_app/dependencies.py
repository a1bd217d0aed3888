"""
FastAPI dependencies for dependency injection.

Infrastructure (key-value cache, link store) comes from the factories as
process-wide singletons. The services built on top of them are constructed
explicitly by build_services() and owned by the application lifespan, which
keeps them on ``app.state``.

Pattern: Dependency Injection
- Loose coupling between components
- Easy to test (inject in-memory backends)
- Flexible (swap implementations via config)
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request

from linkcache_app.cache.factory import CacheBackend, CacheFactory
from linkcache_app.cache.link_cache import LinkCache
from linkcache_app.cache.strategies import CacheStrategy
from linkcache_app.config import settings
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.storage.factory import LinkStoreFactory, StoreBackend
from linkcache_app.storage.strategies import LinkStoreStrategy
from linkcache_app.sync.background_sync import BackgroundSync


@lru_cache()
def get_cache() -> CacheStrategy:
    """
    Get key-value cache instance (singleton).

    Factory gets config from settings internally.
    @lru_cache ensures this is called only once.
    """
    return CacheFactory.create(CacheBackend(settings.cache_backend))


@lru_cache()
def get_store() -> LinkStoreStrategy:
    """Get durable link store instance (singleton)"""
    return LinkStoreFactory.create(StoreBackend(settings.store_backend))


@dataclass
class Services:
    """Everything the HTTP layer needs, wired together"""
    kv: CacheStrategy
    cache: LinkCache
    store: LinkStoreStrategy
    links: LinkDataService
    sync: BackgroundSync


def build_services(
    kv: Optional[CacheStrategy] = None,
    store: Optional[LinkStoreStrategy] = None,
    debounce_seconds: float = settings.visit_debounce_seconds,
    sync_interval: float = settings.sync_interval_seconds,
) -> Services:
    """
    Wire the cache access layer, link service and reconciliation loop.

    Args:
        kv: Key-value backend (defaults to the configured singleton)
        store: Link store (defaults to the configured singleton)
        debounce_seconds: Write-behind debounce window
        sync_interval: Seconds between reconciliation cycles
    """
    kv = kv or get_cache()
    store = store or get_store()
    cache = LinkCache(kv)
    links = LinkDataService(cache, store, debounce_seconds=debounce_seconds)
    sync = BackgroundSync(links, cache, store, interval=sync_interval)
    return Services(kv=kv, cache=cache, store=store, links=links, sync=sync)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_link_service(services: Services = Depends(get_services)) -> LinkDataService:
    """
    Get LinkDataService with all dependencies injected.

    Controllers depend on the service; the service depends on
    infrastructure (cache, store).
    """
    return services.links


def get_background_sync(services: Services = Depends(get_services)) -> BackgroundSync:
    return services.sync
