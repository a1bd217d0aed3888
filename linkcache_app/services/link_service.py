from calendar import monthrange
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
import logging

from linkcache_app.cache.link_cache import LinkCache
from linkcache_app.config import settings
from linkcache_app.exceptions import StoreError
from linkcache_app.schemas.link import LinkRecord, LinkStats, VisitEvent
from linkcache_app.services.visit_buffer import PendingBatch, VisitCommitBuffer
from linkcache_app.storage.strategies import LinkStoreStrategy

logger = logging.getLogger(__name__)


def _month_before(now: datetime) -> datetime:
    """Same day and time one calendar month earlier (clamped to month length)"""
    year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
    day = min(now.day, monthrange(year, month)[1])
    return now.replace(year=year, month=month, day=day)


class LinkDataService:
    """
    Link Data Service - single entry point for reading and writing links.

    Callers never talk to the cache directly:
    - Reads use Cache-Aside (cache, then store, then populate cache)
    - Visits use Write-Behind (counter now, durable commit after a debounce)
    - Writes go to the store first, then invalidate whatever they made stale

    Store failures surface as "absent" (None / []) for reads and False for
    writes; cache failures are absorbed by LinkCache.
    """

    def __init__(
        self,
        cache: LinkCache,
        store: LinkStoreStrategy,
        debounce_seconds: float = settings.visit_debounce_seconds,
        max_retries: int = settings.visit_commit_max_retries,
    ):
        """
        Initialize link service with dependencies.

        Args:
            cache: Cache access layer
            store: Durable link store
            debounce_seconds: Window used to coalesce visits into one commit
            max_retries: Commit attempts per batch of visits
        """
        self.cache = cache
        self.store = store
        self.visit_buffer = VisitCommitBuffer(
            self._commit_visits,
            debounce_seconds=debounce_seconds,
            max_retries=max_retries,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_link_data(self, short_code: str) -> Optional[LinkRecord]:
        """
        Get a link using Cache-Aside pattern.

        Flow:
        1. Check cache first - a hit never touches the store
        2. On miss, query the store by short code
        3. Populate cache for next time (only when the link exists)
        4. Return the record
        """
        cached = await self.cache.get_link_record(short_code)
        if cached is not None:
            logger.debug("Cache HIT for %s", short_code)
            return cached

        logger.debug("Cache MISS for %s, fetching from store", short_code)
        try:
            record = await self.store.get_by_code(short_code)
        except StoreError as e:
            logger.error("Store error reading %s: %s", short_code, e)
            return None

        if record is None:
            return None

        await self.cache.set_link_record(short_code, record)
        return record

    async def get_user_links(self, user_id: str) -> List[LinkRecord]:
        """Owner's links, newest first, with the same Cache-Aside flow"""
        cached = await self.cache.get_owner_links(user_id)
        if cached is not None:
            logger.debug("Cache HIT for links of %s", user_id)
            return cached

        logger.debug("Cache MISS for links of %s", user_id)
        try:
            records = await self.store.list_by_owner(user_id, order_by="created_at")
        except StoreError as e:
            logger.error("Store error listing links of %s: %s", user_id, e)
            return []

        await self.cache.set_owner_links(user_id, records)
        return records

    @staticmethod
    def is_expired(record: LinkRecord, now: Optional[datetime] = None) -> bool:
        if record.expires_at is None:
            return False
        return record.expires_at < (now or datetime.now(timezone.utc))

    async def get_detailed_stats(self, short_code: str, now: Optional[datetime] = None) -> Optional[LinkStats]:
        """
        Exact statistics for a link.

        Always reads the store: the cached snapshot can lag behind committed
        visits, and stats must not depend on whether the cache is warm.
        """
        try:
            record = await self.store.get_by_code(short_code)
        except StoreError as e:
            logger.error("Store error reading stats for %s: %s", short_code, e)
            return None

        if record is None:
            return None

        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        week_ago = now - timedelta(days=7)
        month_ago = _month_before(now)
        history = record.visits_history

        return LinkStats(
            **record.model_dump(exclude={"short_url"}),
            total_visits=record.visits,
            visits_today=sum(1 for v in history if v.date.astimezone(timezone.utc).date() == now.date()),
            visits_this_week=sum(1 for v in history if v.date >= week_ago),
            visits_this_month=sum(1 for v in history if v.date >= month_ago),
        )

    # ------------------------------------------------------------------
    # Visits (write-behind)
    # ------------------------------------------------------------------

    async def record_visit(self, short_code: str, visit: VisitEvent) -> bool:
        """
        Record a visit without waiting for durable storage.

        1. Increment the visit counter (fast path)
        2. Resolve the link (cache-aside); unknown links report failure
        3. Hand the visit to the write-behind buffer and return
        """
        count = await self.cache.increment_visit_counter(short_code)
        logger.debug("Visit count in cache: %d for %s", count, short_code)

        record = await self.get_link_data(short_code)
        if record is None:
            return False

        self.visit_buffer.add(short_code, record.id, visit)
        return True

    async def flush_pending_visits(self) -> int:
        """Commit buffered visits now; returns batches committed"""
        return await self.visit_buffer.flush()

    async def close(self) -> None:
        await self.visit_buffer.close()

    async def _commit_visits(self, batch: PendingBatch) -> bool:
        """Durable half of record_visit, run by the buffer after the debounce"""
        count = len(batch.visits)
        try:
            updated = await self.store.record_visits(batch.link_id, batch.visits)
        except StoreError as e:
            logger.error("Visit sync failed for %s: %s", batch.short_code, e)
            return False

        if updated is None:
            # Deleted while the batch waited; nothing left to count against
            logger.warning("Link %s is gone, discarding %d visits", batch.short_code, count)
            await self.cache.clear_visit_counter(batch.short_code)
            return True

        await self.cache.release_visit_counter(batch.short_code, count)
        await self.cache.invalidate_link_record(batch.short_code)
        logger.info("Synced %d visits for %s (total %d)", count, batch.short_code, updated.visits)
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_link(self, data: Dict[str, Any]) -> Optional[LinkRecord]:
        """
        Insert a link. The per-code cache is not written through: the first
        read populates it. The owner's list is invalidated.
        """
        try:
            record = await self.store.insert(data)
        except StoreError as e:
            logger.error("Error creating link %s: %s", data.get("short_code"), e)
            return None

        if record.user_id:
            await self.cache.invalidate_owner_links(record.user_id)
        return record

    async def update_link(self, link_id: str, updates: Dict[str, Any]) -> bool:
        try:
            previous = await self.store.get_by_id(link_id)
            if previous is None:
                return False
            updated = await self.store.update(link_id, updates)
        except StoreError as e:
            logger.error("Error updating link %s: %s", link_id, e)
            return False

        if updated is None:
            return False

        await self.cache.invalidate_link_record(updated.short_code)
        if previous.short_code != updated.short_code:
            await self.cache.invalidate_link_record(previous.short_code)
        for owner in {previous.user_id, updated.user_id} - {None}:
            await self.cache.invalidate_owner_links(owner)
        return True

    async def delete_link(self, link_id: str, short_code: str, user_id: Optional[str] = None) -> bool:
        """Hard delete; drops the cached record, counter and buffered visits"""
        try:
            deleted = await self.store.delete(link_id)
        except StoreError as e:
            logger.error("Error deleting link %s: %s", link_id, e)
            return False

        if not deleted:
            return False

        self.visit_buffer.discard(short_code)
        await self.cache.invalidate_link_record(short_code)
        await self.cache.clear_visit_counter(short_code)
        if user_id:
            await self.cache.invalidate_owner_links(user_id)
        return True
