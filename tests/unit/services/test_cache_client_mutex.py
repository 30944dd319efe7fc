"""
Tests for the blocking mutex read strategy.
"""

import asyncio

import pytest

from shopcache.constants import CACHE_SHOP_KEY, LOCK_SHOP_KEY, NULL_MARKER
from shopcache.core.config import Settings
from shopcache.core.metrics import CacheMetrics
from shopcache.domain.cache.value_objects import TTL
from shopcache.domain.shop.entities import Shop
from shopcache.infrastructure.redis.exceptions import (
    CacheLockTimeoutException,
    CacheStoreUnavailableException,
)
from shopcache.services.cache.cache_client import MUTEX, CacheClient
from tests.conftest import CountingFallback

SHOP_TTL = TTL.minutes(30)
LOCK_KEY = "lock:shop:1"


@pytest.fixture
def fallback(sample_shop):
    return CountingFallback({1: sample_shop})


async def query(client, fallback, shop_id=1):
    return await client.query_with_mutex(
        CACHE_SHOP_KEY, shop_id, Shop, fallback, SHOP_TTL, lock_key_prefix=LOCK_SHOP_KEY
    )


class TestMutex:
    """Test query_with_mutex."""

    @pytest.mark.asyncio
    async def test_miss_rebuilds_and_releases_lock(self, cache_client, store, fallback, sample_shop):
        assert await query(cache_client, fallback) == sample_shop

        assert fallback.calls == [1]
        assert store.ttl_seconds("cache:shop:1") == 1800
        assert store.raw(LOCK_KEY) is None

    @pytest.mark.asyncio
    async def test_hit_takes_no_lock(self, cache_client, store, fallback, sample_shop):
        await cache_client.set("cache:shop:1", sample_shop, SHOP_TTL)

        assert await query(cache_client, fallback) == sample_shop
        assert store.count("set_nx") == 0
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_concurrent_misses_load_once(self, cache_client, store, fallback, sample_shop):
        fallback.delay = 0.02

        results = await asyncio.gather(*(query(cache_client, fallback) for _ in range(10)))

        assert all(result == sample_shop for result in results)
        assert fallback.calls == [1]
        assert store.raw(LOCK_KEY) is None
        assert cache_client.metrics.lookup_count(MUTEX, "lock_wait") >= 9

    @pytest.mark.asyncio
    async def test_absent_record_cached_as_null_marker(self, cache_client, store):
        fallback = CountingFallback({})

        assert await query(cache_client, fallback, shop_id=999) is None
        assert await query(cache_client, fallback, shop_id=999) is None

        assert fallback.calls == [999]
        assert store.raw("cache:shop:999") == NULL_MARKER
        assert store.ttl_seconds("cache:shop:999") == 120

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, store, scheduler, clock, fallback):
        client = CacheClient(
            store,
            scheduler=scheduler,
            settings=Settings(ENVIRONMENT="test", MUTEX_RETRY_INTERVAL_MS=1, MUTEX_MAX_RETRIES=3),
            metrics=CacheMetrics(),
            clock=clock,
        )
        await store.set_if_absent(LOCK_KEY, "another-instance", TTL(10))

        with pytest.raises(CacheLockTimeoutException) as exc_info:
            await query(client, fallback)

        assert exc_info.value.details == {"lock_key": LOCK_KEY, "attempts": 3}
        assert fallback.calls == []
        assert client.metrics.lookup_count(MUTEX, "lock_wait") == 3

    @pytest.mark.asyncio
    async def test_waiter_returns_value_written_by_holder(
        self, cache_client, store, fallback, sample_shop
    ):
        await store.set_if_absent(LOCK_KEY, "another-instance", TTL(10))

        async def holder_finishes():
            await asyncio.sleep(0.01)
            await cache_client.set("cache:shop:1", sample_shop, SHOP_TTL)
            await store.delete(LOCK_KEY)

        result, _ = await asyncio.gather(query(cache_client, fallback), holder_finishes())

        assert result == sample_shop
        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_fallback_error_releases_lock(self, cache_client, store, fallback):
        fallback.error = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError):
            await query(cache_client, fallback)

        assert store.raw(LOCK_KEY) is None
        assert store.raw("cache:shop:1") is None

    @pytest.mark.asyncio
    async def test_store_unavailable_raises_by_default(self, cache_client, store, fallback):
        store.unavailable = True

        with pytest.raises(CacheStoreUnavailableException):
            await query(cache_client, fallback)

        assert fallback.calls == []

    @pytest.mark.asyncio
    async def test_store_unavailable_bypasses_when_enabled(
        self, store, scheduler, clock, fallback, sample_shop
    ):
        client = CacheClient(
            store,
            scheduler=scheduler,
            settings=Settings(ENVIRONMENT="test", CACHE_BYPASS_ON_STORE_FAILURE=True),
            metrics=CacheMetrics(),
            clock=clock,
        )
        store.unavailable = True

        assert await query(client, fallback) == sample_shop
        assert client.metrics.lookup_count(MUTEX, "bypass") == 1
