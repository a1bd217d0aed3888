"""
Test configuration and fixtures for the link cache service.
This centralizes all test setup, making individual tests clean.

Async code is driven with asyncio.run() inside plain test functions; every
fixture here is loop-agnostic so it can be used from any of those runs.
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import linkcache_app.models  # noqa: F401  (registers tables with Base)
from linkcache_app.cache.link_cache import LinkCache
from linkcache_app.cache.strategies import CacheStrategy, InMemoryCache
from linkcache_app.database.connection import Base, make_engine
from linkcache_app.dependencies import build_services
from linkcache_app.exceptions import CacheUnavailableError, StoreError
from linkcache_app.schemas.link import LinkRecord, VisitEvent
from linkcache_app.services.link_service import LinkDataService
from linkcache_app.storage.strategies import InMemoryLinkStore, SQLAlchemyLinkStore
from main import app

# Short debounce so write-behind commits land quickly in tests
DEBOUNCE = 0.05
SETTLE = 0.3


class FakeClock:
    """Monotonic clock that only moves when told to"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenCache(CacheStrategy):
    """Key-value backend that is always down"""

    def _down(self):
        raise CacheUnavailableError("connection refused", original_error=ConnectionError("refused"))

    async def get(self, key):
        self._down()

    async def set(self, key, value, ttl):
        self._down()

    async def delete(self, key):
        self._down()

    async def incr(self, key, amount=1):
        self._down()

    async def expire(self, key, ttl):
        self._down()

    async def exists(self, key):
        self._down()

    async def clear(self):
        self._down()

    async def info(self):
        self._down()


class FlakyStore(InMemoryLinkStore):
    """In-memory store whose writes/reads can be told to fail"""

    def __init__(self):
        super().__init__()
        self.fail_record_visits = 0  # number of upcoming record_visits calls that fail
        self.fail_reads = False
        self.fail_listing = False
        self.commit_delay = 0.0

    async def get_by_code(self, short_code: str) -> Optional[LinkRecord]:
        if self.fail_reads:
            self.calls["get_by_code"] += 1
            raise StoreError("database is locked")
        return await super().get_by_code(short_code)

    async def list_most_visited(self, limit: int) -> List[LinkRecord]:
        if self.fail_listing:
            raise StoreError("database is locked")
        return await super().list_most_visited(limit)

    async def record_visits(self, link_id: str, visits: List[VisitEvent]) -> Optional[LinkRecord]:
        if self.commit_delay:
            await asyncio.sleep(self.commit_delay)
        if self.fail_record_visits > 0:
            self.fail_record_visits -= 1
            self.calls["record_visits_failed"] += 1
            raise StoreError("database is locked")
        return await super().record_visits(link_id, visits)


def link_data(short_code: str = "abc123", **overrides: Any) -> Dict[str, Any]:
    data = {"short_code": short_code, "original_url": "https://example.com/"}
    data.update(overrides)
    return data


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kv(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def link_cache(kv):
    return LinkCache(kv)


@pytest.fixture
def service(link_cache, store):
    return LinkDataService(link_cache, store, debounce_seconds=DEBOUNCE, max_retries=3)


@pytest.fixture
def sql_store(tmp_path):
    """SQLAlchemy store on a throwaway SQLite file"""
    engine = make_engine(f"sqlite:///{tmp_path / 'links.db'}")
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield SQLAlchemyLinkStore(session_factory)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def services():
    return build_services(kv=InMemoryCache(), store=InMemoryLinkStore(), debounce_seconds=DEBOUNCE)


@pytest.fixture
def client(services):
    """
    Create a test client wired to in-memory backends.
    This is the main fixture that API tests will use.
    """
    app.state.services = services

    with TestClient(app) as test_client:
        yield test_client

    del app.state.services
