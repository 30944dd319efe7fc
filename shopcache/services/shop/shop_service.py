"""
Shop Service

Shop lookups served through the read-through cache. The read strategy is
chosen per service instance (SHOP_CACHE_STRATEGY by default):

- ``pass_through`` guards against lookups of ids that do not exist,
- ``mutex`` rebuilds a missing hot shop once while other callers wait,
- ``logical_expire`` serves pre-warmed shops without ever blocking.
"""

from typing import Optional

import structlog
from opentelemetry import trace

from ...constants import CACHE_SHOP_KEY, LOCK_SHOP_KEY
from ...core.config import Settings, get_settings
from ...domain.cache.value_objects import TTL, CacheKey
from ...domain.shop.entities import Shop
from ...domain.shop.repository_interfaces import ShopRepository
from ..cache.cache_client import LOGICAL_EXPIRE, MUTEX, PASS_THROUGH, CacheClient

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

STRATEGIES = (PASS_THROUGH, MUTEX, LOGICAL_EXPIRE)


class ShopService:
    """Cached shop queries and cache-aware shop updates."""

    def __init__(
        self,
        cache_client: CacheClient,
        repository: ShopRepository,
        strategy: Optional[str] = None,
        ttl: Optional[TTL] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        strategy = strategy or settings.SHOP_CACHE_STRATEGY
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown shop cache strategy: {strategy}")

        self.cache_client = cache_client
        self.repository = repository
        self.strategy = strategy
        self.ttl = ttl or TTL(settings.CACHE_SHOP_TTL_SECONDS)

    async def query_by_id(self, shop_id: int) -> Optional[Shop]:
        """
        Get a shop by id.

        Returns:
            The shop, or None when it does not exist (or, in logical-expiration
            mode, when it was never warmed)
        """
        with tracer.start_as_current_span("shop_service.query_by_id") as span:
            span.set_attribute("shop_id", shop_id)
            span.set_attribute("cache.strategy", self.strategy)

            if self.strategy == PASS_THROUGH:
                return await self.cache_client.query_with_pass_through(
                    CACHE_SHOP_KEY, shop_id, Shop, self.repository.find_by_id, self.ttl
                )
            if self.strategy == MUTEX:
                return await self.cache_client.query_with_mutex(
                    CACHE_SHOP_KEY,
                    shop_id,
                    Shop,
                    self.repository.find_by_id,
                    self.ttl,
                    lock_key_prefix=LOCK_SHOP_KEY,
                )
            return await self.cache_client.query_with_logical_expire(
                CACHE_SHOP_KEY,
                shop_id,
                Shop,
                self.repository.find_by_id,
                self.ttl,
                lock_key_prefix=LOCK_SHOP_KEY,
            )

    async def warm(self, shop_id: int, ttl: Optional[TTL] = None) -> bool:
        """
        Load a shop from the backing store into a logical-expiration envelope.

        Hot shops must be warmed before logical-expiration reads can serve them.

        Returns:
            False if the shop does not exist
        """
        shop = await self.repository.find_by_id(shop_id)
        if shop is None:
            logger.warning("shop_warm_skipped_missing", shop_id=shop_id)
            return False

        await self.cache_client.set_with_logical_expire(
            str(CacheKey.build(CACHE_SHOP_KEY, shop_id)), shop, ttl or self.ttl
        )
        logger.info("shop_cache_warmed", shop_id=shop_id)
        return True

    async def update(self, shop: Shop) -> bool:
        """
        Update a shop in the backing store, then refresh its cached copy.

        Pass-through and mutex modes delete the key so the next read reloads
        it. Logical-expiration mode never rebuilds a missing key on read, so
        the envelope is overwritten in place and readers keep seeing the
        previous copy until the new one lands.

        Raises:
            ValueError: If the shop has no id

        Returns:
            False if the shop does not exist
        """
        if shop.id is None:
            raise ValueError("Shop id is required for update")

        updated = await self.repository.update(shop)
        if not updated:
            return False

        key = str(CacheKey.build(CACHE_SHOP_KEY, shop.id))
        if self.strategy != LOGICAL_EXPIRE:
            await self.cache_client.invalidate(key)
        elif not await self.warm(shop.id):
            # Deleted between the update and the reload
            await self.cache_client.invalidate(key)

        logger.info("shop_updated", shop_id=shop.id, strategy=self.strategy)
        return True
