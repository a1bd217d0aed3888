"""
Tests for the SQLAlchemy link store on a throwaway SQLite database.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import link_data
from linkcache_app.exceptions import StoreError
from linkcache_app.schemas.link import VisitEvent


class TestSQLAlchemyLinkStore:
    """Test the durable store contract against SQLite"""

    def test_insert_and_query(self, sql_store):
        created = asyncio.run(sql_store.insert(link_data("abc123", user_id="u1", script_code={"head": "<meta>"})))

        by_code = asyncio.run(sql_store.get_by_code("abc123"))
        by_id = asyncio.run(sql_store.get_by_id(created.id))

        assert by_code == by_id == created
        assert created.visits == 0
        assert created.visits_history == []
        assert created.script_code == {"head": "<meta>"}
        assert created.created_at is not None
        assert created.created_at.tzinfo is not None

    def test_missing_records(self, sql_store):
        assert asyncio.run(sql_store.get_by_code("missing-code")) is None
        assert asyncio.run(sql_store.get_by_id("missing-id")) is None
        assert asyncio.run(sql_store.update("missing-id", {"visits": 1})) is None
        assert asyncio.run(sql_store.delete("missing-id")) is False

    def test_duplicate_short_code_raises_store_error(self, sql_store):
        asyncio.run(sql_store.insert(link_data("abc123")))

        with pytest.raises(StoreError):
            asyncio.run(sql_store.insert(link_data("abc123")))

    def test_update_writes_only_given_fields(self, sql_store):
        created = asyncio.run(sql_store.insert(link_data("abc123", user_id="u1")))

        updated = asyncio.run(sql_store.update(created.id, {"original_url": "https://python.org/"}))

        assert updated.original_url == "https://python.org/"
        assert updated.short_code == "abc123"
        assert updated.user_id == "u1"

    def test_record_visits_appends_history(self, sql_store):
        created = asyncio.run(sql_store.insert(link_data("abc123")))
        first = VisitEvent(date=datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc), referrer="https://a.example")
        second = VisitEvent(date=datetime(2025, 1, 1, 9, 5, tzinfo=timezone.utc), user_agent="curl/8.0")

        asyncio.run(sql_store.record_visits(created.id, [first]))
        updated = asyncio.run(sql_store.record_visits(created.id, [second, second]))

        assert updated.visits == 3
        assert updated.visits_history == [first, second, second]
        assert updated.last_visited == second.date

    def test_record_visits_for_deleted_link(self, sql_store):
        created = asyncio.run(sql_store.insert(link_data("abc123")))
        assert asyncio.run(sql_store.delete(created.id)) is True

        assert asyncio.run(sql_store.record_visits(created.id, [VisitEvent()])) is None

    def test_datetimes_come_back_in_utc(self, sql_store):
        tehran = timezone(timedelta(hours=3, minutes=30))
        expires = datetime(2030, 6, 1, 12, 0, tzinfo=tehran)

        created = asyncio.run(sql_store.insert(link_data("abc123", expires_at=expires)))

        assert created.expires_at == expires
        assert created.expires_at.utcoffset() == timedelta(0)

    def test_list_by_owner_is_newest_first(self, sql_store):
        base = datetime(2025, 1, 1, tzinfo=timezone.utc)
        for offset, code in enumerate(("first", "second", "third")):
            asyncio.run(sql_store.insert(link_data(code, user_id="u1", created_at=base + timedelta(days=offset))))
        asyncio.run(sql_store.insert(link_data("other", user_id="u2")))

        links = asyncio.run(sql_store.list_by_owner("u1"))
        limited = asyncio.run(sql_store.list_by_owner("u1", limit=2))

        assert [link.short_code for link in links] == ["third", "second", "first"]
        assert [link.short_code for link in limited] == ["third", "second"]

    def test_list_by_owner_rejects_unknown_ordering(self, sql_store):
        with pytest.raises(ValueError):
            asyncio.run(sql_store.list_by_owner("u1", order_by="short_code"))

    def test_list_most_visited(self, sql_store):
        for code, visits in (("low", 1), ("top", 50), ("mid", 10)):
            asyncio.run(sql_store.insert(link_data(code, visits=visits)))

        popular = asyncio.run(sql_store.list_most_visited(2))

        assert [link.short_code for link in popular] == ["top", "mid"]

    def test_never_visited_links_sort_last(self, sql_store):
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        asyncio.run(sql_store.insert(link_data("never", user_id="u1")))
        asyncio.run(sql_store.insert(link_data("old", user_id="u1", last_visited=now - timedelta(days=3))))
        asyncio.run(sql_store.insert(link_data("new", user_id="u1", last_visited=now)))

        links = asyncio.run(sql_store.list_by_owner("u1", order_by="last_visited"))

        assert [link.short_code for link in links] == ["new", "old", "never"]
