"""
Tests for the pass-through (null caching) read strategy.
"""

import json

import pytest

from shopcache.constants import CACHE_SHOP_KEY, NULL_MARKER
from shopcache.core.config import Settings
from shopcache.core.metrics import CacheMetrics
from shopcache.domain.cache.value_objects import TTL
from shopcache.domain.shop.entities import Shop
from shopcache.infrastructure.redis.exceptions import CacheStoreUnavailableException
from shopcache.services.cache.cache_client import PASS_THROUGH, CacheClient
from tests.conftest import CountingFallback

SHOP_TTL = TTL.minutes(30)


@pytest.fixture
def fallback(sample_shop):
    return CountingFallback({1: sample_shop})


class TestPassThrough:
    """Test query_with_pass_through."""

    @pytest.mark.asyncio
    async def test_miss_loads_and_caches_value(self, cache_client, store, fallback, sample_shop):
        result = await cache_client.query_with_pass_through(
            CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL
        )

        assert result == sample_shop
        assert fallback.calls == [1]
        assert json.loads(store.raw("cache:shop:1"))["name"] == sample_shop.name
        assert store.ttl_seconds("cache:shop:1") == 1800

    @pytest.mark.asyncio
    async def test_hit_skips_backing_store(self, cache_client, fallback, sample_shop):
        for _ in range(3):
            result = await cache_client.query_with_pass_through(
                CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL
            )
            assert result == sample_shop

        assert fallback.calls == [1]
        assert cache_client.metrics.lookup_count(PASS_THROUGH, "hit") == 2
        assert cache_client.metrics.lookup_count(PASS_THROUGH, "miss") == 1

    @pytest.mark.asyncio
    async def test_absent_record_cached_as_null_marker(self, cache_client, store, fallback):
        result = await cache_client.query_with_pass_through(
            CACHE_SHOP_KEY, 999, Shop, fallback, SHOP_TTL
        )

        assert result is None
        assert store.raw("cache:shop:999") == NULL_MARKER
        assert store.ttl_seconds("cache:shop:999") == 120

    @pytest.mark.asyncio
    async def test_null_marker_prevents_repeated_backing_store_reads(
        self, cache_client, fallback
    ):
        for _ in range(5):
            result = await cache_client.query_with_pass_through(
                CACHE_SHOP_KEY, 999, Shop, fallback, SHOP_TTL
            )
            assert result is None

        assert fallback.calls == [999]
        assert cache_client.metrics.lookup_count(PASS_THROUGH, "null_hit") == 4

    @pytest.mark.asyncio
    async def test_null_marker_expires_after_null_ttl(self, cache_client, fallback, clock):
        await cache_client.query_with_pass_through(CACHE_SHOP_KEY, 999, Shop, fallback, SHOP_TTL)
        clock.advance(119)
        await cache_client.query_with_pass_through(CACHE_SHOP_KEY, 999, Shop, fallback, SHOP_TTL)
        assert fallback.calls == [999]

        clock.advance(1)
        await cache_client.query_with_pass_through(CACHE_SHOP_KEY, 999, Shop, fallback, SHOP_TTL)
        assert fallback.calls == [999, 999]

    @pytest.mark.asyncio
    async def test_plain_function_fallback(self, cache_client, sample_shop):
        fallback = CountingFallback({1: sample_shop}, is_async=False)

        result = await cache_client.query_with_pass_through(
            CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL
        )

        assert result == sample_shop
        assert fallback.calls == [1]

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_reloaded(self, cache_client, store, fallback, sample_shop):
        await store.set("cache:shop:1", "{not json", SHOP_TTL)

        result = await cache_client.query_with_pass_through(
            CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL
        )

        assert result == sample_shop
        assert fallback.calls == [1]
        assert Shop.model_validate_json(store.raw("cache:shop:1")) == sample_shop
        assert cache_client.metrics.lookup_count(PASS_THROUGH, "corrupt") == 1

    @pytest.mark.asyncio
    async def test_fallback_error_propagates_without_caching(self, cache_client, store, fallback):
        fallback.error = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError, match="database unavailable"):
            await cache_client.query_with_pass_through(CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL)

        assert store.raw("cache:shop:1") is None

    @pytest.mark.asyncio
    async def test_store_unavailable_raises_by_default(self, cache_client, store, fallback):
        store.unavailable = True

        with pytest.raises(CacheStoreUnavailableException):
            await cache_client.query_with_pass_through(CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL)

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

        result = await client.query_with_pass_through(CACHE_SHOP_KEY, 1, Shop, fallback, SHOP_TTL)

        assert result == sample_shop
        assert fallback.calls == [1]
        assert store.data == {}
        assert client.metrics.lookup_count(PASS_THROUGH, "bypass") == 1


class TestWriteHelpers:
    """Test set, set_with_logical_expire and invalidate."""

    @pytest.mark.asyncio
    async def test_set_uses_physical_ttl(self, cache_client, store, sample_shop):
        await cache_client.set("cache:shop:1", sample_shop, TTL(60))

        assert store.ttl_seconds("cache:shop:1") == 60
        assert json.loads(store.raw("cache:shop:1"))["avgPrice"] == 80

    @pytest.mark.asyncio
    async def test_set_with_logical_expire_has_no_physical_ttl(
        self, cache_client, store, clock, sample_shop
    ):
        await cache_client.set_with_logical_expire("cache:shop:1", sample_shop, TTL(60))

        envelope = json.loads(store.raw("cache:shop:1"))
        assert store.ttl_seconds("cache:shop:1") is None
        assert envelope["data"]["name"] == sample_shop.name
        assert envelope["expireTime"].startswith("2024-01-01T12:01:00")

    @pytest.mark.asyncio
    async def test_invalidate(self, cache_client, store, sample_shop):
        await cache_client.set("cache:shop:1", sample_shop, TTL(60))

        assert await cache_client.invalidate("cache:shop:1") is True
        assert store.raw("cache:shop:1") is None
        assert await cache_client.invalidate("cache:shop:1") is False
