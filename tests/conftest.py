"""
Main pytest configuration for all tests.

Fixtures: a controllable clock, an in-memory key-value store honouring
physical TTLs, fake backing-store repositories and a wired cache client.
"""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

# Set test environment variables before importing package modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from shopcache.core.config import Settings
from shopcache.core.metrics import CacheMetrics
from shopcache.domain.cache.repository_interfaces import KeyValueStore
from shopcache.domain.cache.value_objects import TTL
from shopcache.domain.shop.entities import Shop, ShopType
from shopcache.domain.shop.repository_interfaces import ShopRepository, ShopTypeRepository
from shopcache.infrastructure.redis.exceptions import CacheStoreUnavailableException
from shopcache.services.cache.cache_client import CacheClient
from shopcache.services.cache.rebuild_scheduler import RebuildScheduler


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class InMemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store with physical TTLs driven by a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.data: Dict[str, Tuple[str, Optional[datetime]]] = {}
        self.unavailable = False
        self.commands: List[Tuple[str, str]] = []

    def _check(self, operation: str, key: str) -> None:
        self.commands.append((operation, key))
        if self.unavailable:
            raise CacheStoreUnavailableException(operation=operation, key=key)

    def _purge(self, key: str) -> None:
        entry = self.data.get(key)
        if entry and entry[1] is not None and entry[1] <= self.clock():
            del self.data[key]

    async def get(self, key: str) -> Optional[str]:
        self._check("get", key)
        self._purge(key)
        entry = self.data.get(key)
        return entry[0] if entry else None

    async def set(self, key: str, value: str, ttl: Optional[TTL] = None) -> None:
        self._check("set", key)
        expires = self.clock() + ttl.as_timedelta() if ttl else None
        self.data[key] = (value, expires)

    async def set_if_absent(self, key: str, value: str, ttl: TTL) -> bool:
        self._check("set_nx", key)
        self._purge(key)
        if key in self.data:
            return False
        self.data[key] = (value, self.clock() + ttl.as_timedelta())
        return True

    async def delete(self, key: str) -> bool:
        self._check("delete", key)
        self._purge(key)
        return self.data.pop(key, None) is not None

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        self._check("compare_and_delete", key)
        self._purge(key)
        entry = self.data.get(key)
        if entry and entry[0] == expected:
            del self.data[key]
            return True
        return False

    # Inspection helpers

    def raw(self, key: str) -> Optional[str]:
        self._purge(key)
        entry = self.data.get(key)
        return entry[0] if entry else None

    def ttl_seconds(self, key: str) -> Optional[float]:
        """Remaining physical TTL, None for keys without one."""
        self._purge(key)
        entry = self.data.get(key)
        if entry is None or entry[1] is None:
            return None
        return (entry[1] - self.clock()).total_seconds()

    def count(self, operation: str) -> int:
        return sum(1 for op, _ in self.commands if op == operation)


class FakeShopRepository(ShopRepository):
    """In-memory backing store counting reads."""

    def __init__(self, shops: Optional[Dict[int, Shop]] = None):
        self.shops = dict(shops or {})
        self.find_calls: List[int] = []
        self.gate: Optional[asyncio.Event] = None
        self.error: Optional[Exception] = None

    async def find_by_id(self, shop_id: int) -> Optional[Shop]:
        self.find_calls.append(shop_id)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.shops.get(shop_id)

    async def update(self, shop: Shop) -> bool:
        if shop.id not in self.shops:
            return False
        self.shops[shop.id] = shop
        return True


class FakeShopTypeRepository(ShopTypeRepository):
    def __init__(self, shop_types: Optional[List[ShopType]] = None):
        self.shop_types = list(shop_types or [])
        self.calls = 0

    async def list_ordered_by_sort(self) -> List[ShopType]:
        self.calls += 1
        return sorted(self.shop_types, key=lambda t: t.sort)


class CountingFallback:
    """Fallback recording every id it was called with."""

    def __init__(self, values: Optional[Dict[Any, Any]] = None, is_async: bool = True):
        self.values = dict(values or {})
        self.calls: List[Any] = []
        self.is_async = is_async
        self.gate: Optional[asyncio.Event] = None
        self.delay = 0.0
        self.error: Optional[Exception] = None

    def __call__(self, id: Any):
        if self.is_async:
            return self._async_call(id)
        self.calls.append(id)
        if self.error is not None:
            raise self.error
        return self.values.get(id)

    async def _async_call(self, id: Any):
        self.calls.append(id)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.values.get(id)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock)


@pytest.fixture
def test_settings() -> Settings:
    """Settings tuned for fast tests."""
    return Settings(
        ENVIRONMENT="test",
        CACHE_NULL_TTL_SECONDS=120,
        CACHE_SHOP_TTL_SECONDS=1800,
        CACHE_LOCK_TTL_SECONDS=10,
        CACHE_REBUILD_WORKERS=2,
        CACHE_REBUILD_QUEUE_SIZE=100,
        MUTEX_RETRY_INTERVAL_MS=1,
        MUTEX_MAX_RETRIES=500,
        CACHE_BYPASS_ON_STORE_FAILURE=False,
    )


@pytest_asyncio.fixture
async def scheduler():
    scheduler = RebuildScheduler(workers=2, max_queue_size=100, pool_name="test-rebuild")
    yield scheduler
    await scheduler.stop(graceful_timeout=1)


@pytest.fixture
def cache_client(store, scheduler, test_settings, clock) -> CacheClient:
    return CacheClient(
        store,
        scheduler=scheduler,
        settings=test_settings,
        metrics=CacheMetrics(),
        clock=clock,
    )


@pytest.fixture
def sample_shop() -> Shop:
    return Shop(
        id=1,
        name="103 Tea House",
        type_id=1,
        area="Grand View Garden",
        address="No. 29 Jinhua Road",
        x=120.149192,
        y=30.316078,
        avg_price=80,
        sold=4215,
        comments=3035,
        score=37,
        open_hours="10:00-22:00",
    )


@pytest.fixture
def sample_shop_types() -> List[ShopType]:
    return [
        ShopType(id=2, name="KTV", icon="/types/ktv.png", sort=2),
        ShopType(id=1, name="Food", icon="/types/food.png", sort=1),
        ShopType(id=3, name="Hair", icon="/types/hair.png", sort=3),
    ]


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "redis: marks tests as Redis-related")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
