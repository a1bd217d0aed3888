"""
Write-behind buffer for visit events.

Visits are grouped per short code into a pending batch. The first visit of a
batch schedules a commit after the debounce window; later visits join the
same batch. Commits for one code never overlap: a batch that becomes due
while the previous one is still being written waits for it, and keeps
accepting visits while it waits.

A failed batch is merged back into the code's pending batch and retried
after another debounce window, up to ``max_retries`` attempts.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Set
import asyncio
import logging

from linkcache_app.schemas.link import VisitEvent

logger = logging.getLogger(__name__)


@dataclass
class PendingBatch:
    """Visits for one short code waiting to be committed"""
    short_code: str
    link_id: str
    visits: List[VisitEvent] = field(default_factory=list)
    attempts: int = 0
    committed: bool = False
    timer: Optional[asyncio.Task] = None


CommitCallback = Callable[[PendingBatch], Awaitable[bool]]


class VisitCommitBuffer:
    """
    Per-code debounce map of pending visit commits.

    Args:
        commit: Coroutine writing a batch durably; returns True on success
        debounce_seconds: Delay between the first visit of a batch and its commit
        max_retries: Attempts per batch before its visits are dropped
    """

    def __init__(self, commit: CommitCallback, debounce_seconds: float = 2.0, max_retries: int = 3):
        self._commit_batch = commit
        self.debounce_seconds = debounce_seconds
        self.max_retries = max_retries
        self._pending: Dict[str, PendingBatch] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Counter = Counter()
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    def add(self, short_code: str, link_id: str, visit: VisitEvent) -> PendingBatch:
        """Queue a visit; never waits for storage"""
        batch = self._pending.get(short_code)
        if batch is None or batch.link_id != link_id:
            if batch is not None:
                # Code now points at another record; the old batch commits on its own
                self._pending.pop(short_code)
            batch = PendingBatch(short_code=short_code, link_id=link_id)
            self._pending[short_code] = batch
            self._schedule(batch, self.debounce_seconds)
        batch.visits.append(visit)
        return batch

    def discard(self, short_code: str) -> int:
        """Drop visits not yet being committed (the link is gone)"""
        batch = self._pending.pop(short_code, None)
        if batch is None:
            return 0
        dropped = len(batch.visits)
        batch.visits.clear()
        if batch.timer is not None:
            batch.timer.cancel()
        return dropped

    def pending_codes(self) -> List[str]:
        return list(self._pending)

    def pending_count(self, short_code: str) -> int:
        batch = self._pending.get(short_code)
        return len(batch.visits) if batch else 0

    def in_flight(self) -> int:
        """Scheduled or running commit tasks"""
        return len(self._tasks)

    def locked_codes(self) -> List[str]:
        """Codes with a commit running or waiting for its turn"""
        return list(self._locks)

    async def flush(self) -> int:
        """
        Commit every pending batch now instead of waiting for its timer.

        Returns:
            Number of batches committed successfully
        """
        committed = 0
        for batch in list(self._pending.values()):
            if batch.timer is not None and batch.timer is not asyncio.current_task():
                batch.timer.cancel()
            if await self._commit(batch):
                committed += 1
        return committed

    async def close(self) -> None:
        """Flush what is pending and wait for commits already running"""
        self._closed = True
        await self.flush()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _schedule(self, batch: PendingBatch, delay: float) -> None:
        task = asyncio.create_task(self._commit_later(batch, delay), name=f"visit-commit:{batch.short_code}")
        batch.timer = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _commit_later(self, batch: PendingBatch, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._commit(batch)

    async def _commit(self, batch: PendingBatch) -> bool:
        code = batch.short_code
        lock = self._locks.get(code)
        if lock is None:
            lock = self._locks[code] = asyncio.Lock()
        # Holders and waiters keep the lock alive; the last one out drops it
        self._lock_users[code] += 1
        try:
            async with lock:
                return await self._commit_locked(batch)
        finally:
            self._lock_users[code] -= 1
            if not self._lock_users[code]:
                del self._lock_users[code]
                del self._locks[code]

    async def _commit_locked(self, batch: PendingBatch) -> bool:
        if batch.committed:
            return True
        # From here on, new visits for this code open a fresh batch
        if self._pending.get(batch.short_code) is batch:
            del self._pending[batch.short_code]
        if not batch.visits:
            return True

        batch.attempts += 1
        try:
            ok = await self._commit_batch(batch)
        except Exception:
            logger.exception("Unexpected error committing visits for %s", batch.short_code)
            ok = False

        if ok:
            batch.committed = True
            return True
        self._requeue(batch)
        return False

    def _requeue(self, batch: PendingBatch) -> None:
        if batch.attempts >= self.max_retries or self._closed:
            logger.error(
                "Dropping %d visits for %s after %d attempts",
                len(batch.visits), batch.short_code, batch.attempts,
            )
            return

        pending = self._pending.get(batch.short_code)
        if pending is not None and pending.link_id == batch.link_id:
            # Older visits go first so history stays chronological
            pending.visits[:0] = batch.visits
            pending.attempts = max(pending.attempts, batch.attempts)
            return

        logger.warning(
            "Retrying %d visits for %s in %.1fs (attempt %d/%d)",
            len(batch.visits), batch.short_code, self.debounce_seconds,
            batch.attempts, self.max_retries,
        )
        if pending is None:
            self._pending[batch.short_code] = batch
        self._schedule(batch, self.debounce_seconds)
