"""
Background Reconciliation Loop

Periodic housekeeping for the link cache. Each cycle:
1. Syncs visit batches still pending in the write-behind buffer (strays)
2. Leaves stale-entry cleanup to the key-value store's own TTL expiry
3. Preloads the most visited links into the cache

It also offers on-demand invalidation and per-owner cache warm-up.

A failing action is logged and never stops the loop or the other actions.
The web app starts and stops one instance through its lifespan; it can also
run on its own:

    python -m linkcache_app.sync.background_sync
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import asyncio
import logging
import signal

from linkcache_app.cache.link_cache import LinkCache
from linkcache_app.config import settings
from linkcache_app.exceptions import StoreError
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.storage.strategies import LinkStoreStrategy

logger = logging.getLogger(__name__)


class BackgroundSync:
    """
    Recurring reconciliation task with an explicit start/stop lifecycle.

    Args:
        service: Link data service owning the write-behind buffer
        cache: Cache access layer
        store: Durable link store
        interval: Seconds between cycles
        batch_size: Popular links preloaded per cycle
        warmup_limit: Links cached per owner by warmup_user_cache
        initial_delay: Seconds before the first cycle after start()
    """

    def __init__(
        self,
        service: LinkDataService,
        cache: LinkCache,
        store: LinkStoreStrategy,
        interval: float = settings.sync_interval_seconds,
        batch_size: int = settings.sync_batch_size,
        warmup_limit: int = settings.warmup_limit,
        initial_delay: float = settings.sync_initial_delay_seconds,
    ):
        self.service = service
        self.cache = cache
        self.store = store
        self.interval = interval
        self.batch_size = batch_size
        self.warmup_limit = warmup_limit
        self.initial_delay = initial_delay

        self.running = False
        self.cycles = 0
        self.last_cycle_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:
        """Start the loop on the running event loop (no-op if already running)"""
        if self.running:
            logger.info("Background sync already running")
            return

        self.running = True
        self._task = asyncio.create_task(self._run(), name="background-sync")
        logger.info(
            "Background sync started (interval %.0fs, batch size %d)",
            self.interval, self.batch_size,
        )

    async def stop(self) -> None:
        """Cancel the timer task and wait for it to finish"""
        task, self._task = self._task, None
        self.running = False
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Background sync task had failed")
        logger.info("Background sync stopped")

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.initial_delay)
            while self.running:
                await self.perform_sync()
                await asyncio.sleep(self.interval)
        except Exception:
            logger.exception("Background sync loop crashed")
        finally:
            # A dead loop must not block a later start()
            self.running = False

    async def perform_sync(self) -> None:
        """Run one reconciliation cycle; a failing action never stops the others"""
        logger.debug("Starting sync cycle")

        for action in (self.sync_pending_visits, self.clean_expired_cache, self.preload_popular_links):
            try:
                await action()
            except Exception:
                logger.exception("Sync action %s failed", action.__name__)

        self.cycles += 1
        self.last_cycle_at = datetime.now(timezone.utc)
        logger.debug("Sync cycle completed")

    async def sync_pending_visits(self) -> int:
        """
        Commit visit batches still waiting in the buffer.

        Every visit schedules its own commit, so this only catches strays
        (e.g. batches waiting for a retry).
        """
        try:
            pending = self.service.visit_buffer.pending_codes()
            if not pending:
                return 0
            committed = await self.service.flush_pending_visits()
            logger.info("Synced %d of %d pending visit batches", committed, len(pending))
            return committed
        except Exception:
            logger.exception("Error syncing pending visits")
            return 0

    async def clean_expired_cache(self) -> None:
        """Every cache entry carries a TTL, so the store evicts on its own"""
        logger.debug("Expired cache entries are evicted by TTL")

    async def preload_popular_links(self) -> int:
        """
        Cache the most visited links that are not cached yet.

        Returns:
            Number of links written to the cache
        """
        try:
            popular = await self.store.list_most_visited(self.batch_size)
        except StoreError as e:
            logger.error("Error fetching popular links: %s", e)
            return 0

        preloaded = 0
        for record in popular:
            try:
                if await self.cache.has_link_record(record.short_code):
                    continue
                await self.cache.set_link_record(record.short_code, record)
                preloaded += 1
            except Exception:
                logger.exception("Error preloading %s", record.short_code)

        if preloaded:
            logger.info("Preloaded %d popular links", preloaded)
        return preloaded

    async def invalidate_link(self, short_code: str, user_id: Optional[str] = None) -> None:
        """Force-drop everything cached for one link"""
        await self.cache.invalidate_link_record(short_code)
        await self.cache.clear_visit_counter(short_code)
        if user_id:
            await self.cache.invalidate_owner_links(user_id)
        logger.info("Invalidated cache for %s", short_code)

    async def warmup_user_cache(self, user_id: str) -> int:
        """
        Cache an owner's most recently visited links, one by one and as
        the owner list.

        Returns:
            Number of links cached
        """
        try:
            links = await self.store.list_by_owner(
                user_id, limit=self.warmup_limit, order_by="last_visited"
            )
        except StoreError as e:
            logger.error("Error warming up cache for %s: %s", user_id, e)
            return 0

        if not links:
            return 0

        for link in links:
            await self.cache.set_link_record(link.short_code, link)
        await self.cache.set_owner_links(user_id, links)

        logger.info("Warmed up %d links for user %s", len(links), user_id)
        return len(links)

    async def get_cache_stats(self) -> Dict[str, Any]:
        buffer = self.service.visit_buffer
        return {
            "running": self.running,
            "cycles": self.cycles,
            "last_cycle_at": self.last_cycle_at.isoformat() if self.last_cycle_at else None,
            "pending_batches": len(buffer.pending_codes()),
            "commit_tasks": buffer.in_flight(),
            "cache": await self.cache.stats(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


async def main():
    """
    Run the reconciliation loop as a standalone worker.

    Usage:
        python -m linkcache_app.sync.background_sync
    """
    from linkcache_app.cache.factory import CacheBackend, CacheFactory
    from linkcache_app.logging_config import setup_logging
    from linkcache_app.storage.factory import LinkStoreFactory, StoreBackend

    setup_logging(settings.log_level)
    logger.info("Environment: %s", settings.environment)
    logger.info("Cache backend: %s", settings.cache_backend)
    logger.info("Store backend: %s", settings.store_backend)

    kv = CacheFactory.create(CacheBackend(settings.cache_backend))
    store = LinkStoreFactory.create(StoreBackend(settings.store_backend))
    cache = LinkCache(kv)
    service = LinkDataService(cache, store)
    sync = BackgroundSync(service, cache, store)

    stopped = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stopped.set)

    sync.start()
    try:
        await stopped.wait()
    finally:
        logger.info("Shutting down gracefully...")
        await sync.stop()
        await service.close()
        await kv.close()


if __name__ == "__main__":
    asyncio.run(main())
