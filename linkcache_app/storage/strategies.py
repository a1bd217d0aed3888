"""
Durable link store strategies using Strategy Pattern.

The link data service only depends on LinkStoreStrategy:
- SQLAlchemyLinkStore: the real store (SQLite by default, any SQLAlchemy URL)
- InMemoryLinkStore: development/testing, with call counters

Every operation is async and raises StoreError when the backend fails.
"""

from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
import asyncio

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from linkcache_app.exceptions import StoreError
from linkcache_app.models.link import Link, new_link_id
from linkcache_app.schemas.link import LinkRecord, VisitEvent

ORDERABLE_FIELDS = ("created_at", "last_visited", "visits")


def _column_values(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Convert record fields into plain column values (JSON-ready history)"""
    values = dict(fields)
    if "visits_history" in values:
        values["visits_history"] = [
            event.model_dump(mode="json") if isinstance(event, VisitEvent) else event
            for event in values["visits_history"] or []
        ]
    if "original_url" in values and values["original_url"] is not None:
        values["original_url"] = str(values["original_url"])
    # Some backends drop the offset, so datetimes are always stored as UTC
    for field in ("expires_at", "last_visited", "created_at"):
        value = values.get(field)
        if isinstance(value, datetime) and value.tzinfo is not None:
            values[field] = value.astimezone(timezone.utc)
    return values


class LinkStoreStrategy(ABC):
    """
    Abstract base class for durable link stores.

    Contract:
    - query by short code or id returns a record or None
    - insert returns the created record
    - update by id writes only the given fields and returns the new record,
      or None when no record has that id
    - delete by id returns whether a record was removed
    - owner queries are ordered newest first and accept an optional limit
    """

    @abstractmethod
    async def get_by_code(self, short_code: str) -> Optional[LinkRecord]:
        pass

    @abstractmethod
    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        pass

    @abstractmethod
    async def insert(self, data: Dict[str, Any]) -> LinkRecord:
        pass

    @abstractmethod
    async def update(self, link_id: str, fields: Dict[str, Any]) -> Optional[LinkRecord]:
        pass

    @abstractmethod
    async def record_visits(self, link_id: str, visits: List[VisitEvent]) -> Optional[LinkRecord]:
        """
        Add ``len(visits)`` to the visit count, append the events to the
        history and move ``last_visited`` forward, all in one write.

        Returns:
            The updated record, or None when no record has that id
        """
        pass

    @abstractmethod
    async def delete(self, link_id: str) -> bool:
        pass

    @abstractmethod
    async def list_by_owner(
        self,
        user_id: str,
        limit: Optional[int] = None,
        order_by: str = "created_at"
    ) -> List[LinkRecord]:
        """Owner's links, descending by ``order_by``"""
        pass

    @abstractmethod
    async def list_most_visited(self, limit: int) -> List[LinkRecord]:
        """Links with the highest durable visit count"""
        pass


class SQLAlchemyLinkStore(LinkStoreStrategy):
    """
    SQLAlchemy implementation of the link store.

    Sessions are synchronous, so each operation runs in a worker thread
    (asyncio.to_thread) and the event loop keeps serving other requests.
    One session per operation; commits happen inside the operation.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Args:
            session_factory: Factory for creating database sessions
        """
        self.session_factory = session_factory

    async def _run(self, operation: Callable[[Session], Any], description: str) -> Any:
        def work():
            db = self.session_factory()
            try:
                return operation(db)
            except SQLAlchemyError:
                db.rollback()
                raise
            finally:
                db.close()

        try:
            return await asyncio.to_thread(work)
        except IntegrityError as e:
            raise StoreError(f"{description}: constraint violation", original_error=e) from e
        except SQLAlchemyError as e:
            raise StoreError(f"{description}: {e}", original_error=e) from e

    async def get_by_code(self, short_code: str) -> Optional[LinkRecord]:
        def operation(db: Session):
            row = db.scalars(select(Link).where(Link.short_code == short_code)).first()
            return LinkRecord.model_validate(row) if row else None

        return await self._run(operation, f"get link {short_code}")

    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        def operation(db: Session):
            row = db.get(Link, link_id)
            return LinkRecord.model_validate(row) if row else None

        return await self._run(operation, f"get link id {link_id}")

    async def insert(self, data: Dict[str, Any]) -> LinkRecord:
        values = _column_values(data)
        values.setdefault("id", new_link_id())
        values.setdefault("visits", 0)
        values.setdefault("visits_history", [])

        def operation(db: Session):
            row = Link(**values)
            db.add(row)
            db.commit()
            db.refresh(row)
            return LinkRecord.model_validate(row)

        return await self._run(operation, f"insert link {values.get('short_code')}")

    async def update(self, link_id: str, fields: Dict[str, Any]) -> Optional[LinkRecord]:
        values = _column_values(fields)
        values.pop("id", None)

        def operation(db: Session):
            row = db.get(Link, link_id)
            if row is None:
                return None
            for column, value in values.items():
                setattr(row, column, value)
            db.commit()
            db.refresh(row)
            return LinkRecord.model_validate(row)

        return await self._run(operation, f"update link id {link_id}")

    async def record_visits(self, link_id: str, visits: List[VisitEvent]) -> Optional[LinkRecord]:
        events = [visit.model_dump(mode="json") for visit in visits]
        newest = max(visit.date for visit in visits).astimezone(timezone.utc)

        def operation(db: Session):
            row = db.get(Link, link_id, with_for_update=True)
            if row is None:
                return None
            row.visits = (row.visits or 0) + len(events)
            row.visits_history = list(row.visits_history or []) + events
            row.last_visited = newest
            db.commit()
            db.refresh(row)
            return LinkRecord.model_validate(row)

        return await self._run(operation, f"record visits for link id {link_id}")

    async def delete(self, link_id: str) -> bool:
        def operation(db: Session):
            row = db.get(Link, link_id)
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

        return await self._run(operation, f"delete link id {link_id}")

    async def list_by_owner(
        self,
        user_id: str,
        limit: Optional[int] = None,
        order_by: str = "created_at"
    ) -> List[LinkRecord]:
        if order_by not in ORDERABLE_FIELDS:
            raise ValueError(f"Cannot order links by {order_by}")
        column = getattr(Link, order_by)

        def operation(db: Session):
            statement = select(Link).where(Link.user_id == user_id).order_by(column.desc().nulls_last())
            if limit is not None:
                statement = statement.limit(limit)
            return [LinkRecord.model_validate(row) for row in db.scalars(statement)]

        return await self._run(operation, f"list links of {user_id}")

    async def list_most_visited(self, limit: int) -> List[LinkRecord]:
        def operation(db: Session):
            statement = select(Link).order_by(Link.visits.desc()).limit(limit)
            return [LinkRecord.model_validate(row) for row in db.scalars(statement)]

        return await self._run(operation, "list most visited links")


class InMemoryLinkStore(LinkStoreStrategy):
    """
    In-memory link store.

    Keeps records in a dict and counts every call by operation name, which
    lets tests assert whether a read reached the store. Records are copied on
    the way in and out so callers never share state with the store.
    """

    def __init__(self):
        self._records: Dict[str, LinkRecord] = {}
        self._order: Dict[str, int] = {}
        self._sequence = 0
        self.calls: Counter = Counter()

    def _copy(self, record: LinkRecord) -> LinkRecord:
        return record.model_copy(deep=True)

    def _descending(self, records: List[LinkRecord], field: str) -> List[LinkRecord]:
        # Missing values sort last; insertion order breaks ties
        lowest = 0 if field == "visits" else datetime.min.replace(tzinfo=timezone.utc)

        def key(record: LinkRecord):
            value = getattr(record, field)
            return (lowest if value is None else value, self._order[record.id])

        return sorted(records, key=key, reverse=True)

    async def get_by_code(self, short_code: str) -> Optional[LinkRecord]:
        self.calls["get_by_code"] += 1
        for record in self._records.values():
            if record.short_code == short_code:
                return self._copy(record)
        return None

    async def get_by_id(self, link_id: str) -> Optional[LinkRecord]:
        self.calls["get_by_id"] += 1
        record = self._records.get(link_id)
        return self._copy(record) if record else None

    async def insert(self, data: Dict[str, Any]) -> LinkRecord:
        self.calls["insert"] += 1
        values = _column_values(data)
        values.setdefault("id", new_link_id())
        values.setdefault("created_at", datetime.now(timezone.utc))
        if values["id"] in self._records:
            raise StoreError(f"insert link {values['id']}: duplicate id")
        if any(r.short_code == values.get("short_code") for r in self._records.values()):
            raise StoreError(f"insert link {values.get('short_code')}: duplicate short code")
        record = LinkRecord.model_validate(values)
        self._records[record.id] = record
        self._sequence += 1
        self._order[record.id] = self._sequence
        return self._copy(record)

    async def update(self, link_id: str, fields: Dict[str, Any]) -> Optional[LinkRecord]:
        self.calls["update"] += 1
        record = self._records.get(link_id)
        if record is None:
            return None
        values = _column_values(fields)
        values.pop("id", None)
        new_code = values.get("short_code")
        if new_code and any(
            r.short_code == new_code and r.id != link_id for r in self._records.values()
        ):
            raise StoreError(f"update link id {link_id}: duplicate short code")
        updated = LinkRecord.model_validate({**record.model_dump(exclude={"short_url"}), **values})
        self._records[link_id] = updated
        return self._copy(updated)

    async def record_visits(self, link_id: str, visits: List[VisitEvent]) -> Optional[LinkRecord]:
        self.calls["record_visits"] += 1
        record = self._records.get(link_id)
        if record is None:
            return None
        updated = record.model_copy(update={
            "visits": record.visits + len(visits),
            "visits_history": record.visits_history + list(visits),
            "last_visited": max(visit.date for visit in visits),
        })
        self._records[link_id] = updated
        return self._copy(updated)

    async def delete(self, link_id: str) -> bool:
        self.calls["delete"] += 1
        self._order.pop(link_id, None)
        return self._records.pop(link_id, None) is not None

    async def list_by_owner(
        self,
        user_id: str,
        limit: Optional[int] = None,
        order_by: str = "created_at"
    ) -> List[LinkRecord]:
        self.calls["list_by_owner"] += 1
        if order_by not in ORDERABLE_FIELDS:
            raise ValueError(f"Cannot order links by {order_by}")
        owned = [r for r in self._records.values() if r.user_id == user_id]
        ordered = self._descending(owned, order_by)
        if limit is not None:
            ordered = ordered[:limit]
        return [self._copy(r) for r in ordered]

    async def list_most_visited(self, limit: int) -> List[LinkRecord]:
        self.calls["list_most_visited"] += 1
        ordered = self._descending(list(self._records.values()), "visits")
        return [self._copy(r) for r in ordered[:limit]]
