"""
Dependency wiring.

Builds the Redis-backed cache client and the shop services from settings.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .domain.shop.repository_interfaces import ShopRepository, ShopTypeRepository
from .infrastructure.redis.connection_factory import RedisConnectionFactory
from .infrastructure.redis.redis_store import RedisKeyValueStore
from .services.cache.cache_client import CacheClient
from .services.shop.shop_service import ShopService
from .services.shop.shop_type_service import ShopTypeService

logger = structlog.get_logger(__name__)


@dataclass
class ShopCacheContainer:
    """Wired services sharing one connection pool and one rebuild pool."""

    connection_factory: RedisConnectionFactory
    cache_client: CacheClient
    shop_service: ShopService
    shop_type_service: ShopTypeService

    def get_status(self) -> Dict[str, Any]:
        """Connection, circuit breaker, rebuild pool and cache counters."""
        store = self.cache_client.store
        return {
            "redis": self.connection_factory.get_metrics(),
            "store": store.get_status() if isinstance(store, RedisKeyValueStore) else {},
            "rebuild_scheduler": self.cache_client.scheduler.get_stats(),
            "cache": self.cache_client.metrics.snapshot(),
        }

    async def close(self) -> None:
        """Let queued rebuilds finish, then close Redis connections."""
        await self.cache_client.close()
        await self.connection_factory.close()


async def build_cache_client(
    connection_factory: RedisConnectionFactory,
    settings: Optional[Settings] = None,
) -> CacheClient:
    """Create a cache client on the factory's shared Redis client."""
    settings = settings or get_settings()
    redis = await connection_factory.get_client()
    store = RedisKeyValueStore(redis, settings=settings)
    return CacheClient(store, settings=settings)


async def build_container(
    shop_repository: ShopRepository,
    shop_type_repository: ShopTypeRepository,
    settings: Optional[Settings] = None,
) -> ShopCacheContainer:
    """
    Wire every service against Redis.

    Raises:
        CacheStoreUnavailableException: If Redis cannot be reached
    """
    settings = settings or get_settings()
    configure_logging(settings=settings)
    connection_factory = RedisConnectionFactory(settings)
    cache_client = await build_cache_client(connection_factory, settings)

    container = ShopCacheContainer(
        connection_factory=connection_factory,
        cache_client=cache_client,
        shop_service=ShopService(cache_client, shop_repository, settings=settings),
        shop_type_service=ShopTypeService(
            cache_client, shop_type_repository, settings=settings
        ),
    )
    logger.info(
        "shop_cache_container_ready",
        strategy=settings.SHOP_CACHE_STRATEGY,
        rebuild_workers=settings.CACHE_REBUILD_WORKERS,
    )
    return container
