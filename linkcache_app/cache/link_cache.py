"""
Typed cache access for link data.

Three disjoint key namespaces live in the key-value store:

    link:{short_code}        full LinkRecord snapshot        (TTL 5 min)
    visits:{short_code}      visits not yet committed        (TTL 1 min)
    user_links:{user_id}     owner's list of LinkRecord      (TTL 2 min)

Every operation tolerates an unavailable store. Internally each call yields a
CacheResult; the public methods turn failures into "not cached" / no-op so a
Redis outage only ever costs a recompute.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, List, Optional, TypeVar
import logging

from pydantic import TypeAdapter, ValidationError

from linkcache_app.cache.strategies import CacheStrategy
from linkcache_app.config import settings
from linkcache_app.exceptions import CacheUnavailableError
from linkcache_app.schemas.link import LinkRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

_record_list = TypeAdapter(List[LinkRecord])


class CacheFailure(Enum):
    """Why a cache operation did not produce a value"""
    UNAVAILABLE = "unavailable"  # backend error (connection refused, timeout...)
    CORRUPT = "corrupt"  # stored payload could not be decoded


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """Outcome of a single cache operation"""
    value: Optional[T] = None
    failure: Optional[CacheFailure] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def value_or(self, default: T) -> T:
        if not self.ok or self.value is None:
            return default
        return self.value


def link_key(short_code: str) -> str:
    return f"link:{short_code}"


def counter_key(short_code: str) -> str:
    return f"visits:{short_code}"


def owner_key(user_id: str) -> str:
    return f"user_links:{user_id}"


class LinkCache:
    """
    Cache access layer for link records, visit counters and owner link lists.

    Args:
        cache: Key-value backend
        link_ttl: TTL of link snapshots in seconds
        counter_ttl: TTL of visit counters, refreshed on every increment
        owner_ttl: TTL of owner link lists
    """

    def __init__(
        self,
        cache: CacheStrategy,
        link_ttl: int = settings.link_data_ttl,
        counter_ttl: int = settings.visit_counter_ttl,
        owner_ttl: int = settings.user_links_ttl,
    ):
        self.cache = cache
        self.link_ttl = link_ttl
        self.counter_ttl = counter_ttl
        self.owner_ttl = owner_ttl
        self.last_failure: Optional[CacheResult] = None
        self.failures: Dict[CacheFailure, int] = {failure: 0 for failure in CacheFailure}

    # ------------------------------------------------------------------
    # Result-returning primitives
    # ------------------------------------------------------------------

    def _fail(self, failure: CacheFailure, action: str, key: str, error: Exception) -> CacheResult:
        result = CacheResult(failure=failure, error=error)
        self.last_failure = result
        self.failures[failure] += 1
        logger.warning("Cache %s failed for %s (%s): %s", action, key, failure.value, error)
        return result

    async def _call(self, action: str, key: str, operation: Callable[[], Awaitable[T]]) -> CacheResult[T]:
        try:
            return CacheResult(value=await operation())
        except CacheUnavailableError as e:
            return self._fail(CacheFailure.UNAVAILABLE, action, key, e)

    async def read(self, key: str, decode: Callable[[str], T]) -> CacheResult[T]:
        """Fetch and decode ``key``; an undecodable payload is deleted"""
        raw = await self._call("get", key, lambda: self.cache.get(key))
        if not raw.ok or raw.value is None:
            return raw
        try:
            return CacheResult(value=decode(raw.value))
        except (ValidationError, ValueError) as e:
            await self._call("delete", key, lambda: self.cache.delete(key))
            return self._fail(CacheFailure.CORRUPT, "decode", key, e)

    async def write(self, key: str, value: str, ttl: int) -> CacheResult[bool]:
        return await self._call("set", key, lambda: self.cache.set(key, value, ttl))

    async def remove(self, key: str) -> CacheResult[bool]:
        return await self._call("delete", key, lambda: self.cache.delete(key))

    async def increment(self, key: str, amount: int, ttl: int) -> CacheResult[int]:
        """INCRBY then refresh the TTL so an idle counter eventually expires"""

        async def operation() -> int:
            count = await self.cache.incr(key, amount)
            await self.cache.expire(key, ttl)
            return count

        return await self._call("incr", key, operation)

    # ------------------------------------------------------------------
    # Link records
    # ------------------------------------------------------------------

    async def get_link_record(self, short_code: str) -> Optional[LinkRecord]:
        result = await self.read(link_key(short_code), LinkRecord.model_validate_json)
        return result.value_or(None)

    async def has_link_record(self, short_code: str) -> bool:
        result = await self._call("exists", link_key(short_code),
                                  lambda: self.cache.exists(link_key(short_code)))
        return bool(result.value_or(False))

    async def set_link_record(self, short_code: str, record: LinkRecord, ttl: Optional[int] = None) -> None:
        await self.write(link_key(short_code), record.model_dump_json(), ttl or self.link_ttl)

    async def invalidate_link_record(self, short_code: str) -> None:
        await self.remove(link_key(short_code))

    # ------------------------------------------------------------------
    # Visit counters
    # ------------------------------------------------------------------

    async def increment_visit_counter(self, short_code: str, ttl: Optional[int] = None) -> int:
        """
        Count one visit. Returns the new total, or 0 when the cache is down
        (callers treat 0 as "nothing to flush").
        """
        result = await self.increment(counter_key(short_code), 1, ttl or self.counter_ttl)
        return result.value_or(0)

    async def get_visit_counter(self, short_code: str) -> int:
        result = await self.read(counter_key(short_code), int)
        return result.value_or(0)

    async def clear_visit_counter(self, short_code: str) -> None:
        await self.remove(counter_key(short_code))

    async def release_visit_counter(self, short_code: str, amount: int) -> int:
        """
        Subtract a committed batch from the counter.

        Visits counted while the batch was being written stay in the counter;
        once nothing is left the key is deleted. Returns what remains.
        """
        key = counter_key(short_code)
        result = await self._call("incr", key, lambda: self.cache.incr(key, -amount))
        if not result.ok:
            return 0
        if result.value <= 0:
            await self.remove(key)
            return 0
        return result.value

    # ------------------------------------------------------------------
    # Owner link lists
    # ------------------------------------------------------------------

    async def get_owner_links(self, user_id: str) -> Optional[List[LinkRecord]]:
        result = await self.read(owner_key(user_id), _record_list.validate_json)
        return result.value_or(None)

    async def set_owner_links(self, user_id: str, records: List[LinkRecord], ttl: Optional[int] = None) -> None:
        payload = _record_list.dump_json(records).decode("utf-8")
        await self.write(owner_key(user_id), payload, ttl or self.owner_ttl)

    async def invalidate_owner_links(self, user_id: str) -> None:
        await self.remove(owner_key(user_id))

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def stats(self) -> Dict[str, Any]:
        backend = await self._call("info", "*", self.cache.info)
        return {
            "available": backend.ok,
            "backend": backend.value_or({}),
            "failures": {failure.value: count for failure, count in self.failures.items()},
            "ttl": {
                "link_data": self.link_ttl,
                "visit_counter": self.counter_ttl,
                "user_links": self.owner_ttl,
            },
        }
