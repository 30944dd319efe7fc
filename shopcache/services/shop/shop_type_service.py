"""
Shop Type Service

The shop type list is small, read on every home page load and rarely
changes, so it is cached as a single pass-through entry.
"""

from typing import List, Optional

from ...constants import CACHE_SHOP_TYPE_KEY
from ...core.config import Settings, get_settings
from ...domain.cache.value_objects import TTL, CacheKey
from ...domain.shop.entities import ShopType
from ...domain.shop.repository_interfaces import ShopTypeRepository
from ..cache.cache_client import CacheClient

TYPE_LIST_ID = "list"


class ShopTypeService:
    """Cached shop type list."""

    def __init__(
        self,
        cache_client: CacheClient,
        repository: ShopTypeRepository,
        ttl: Optional[TTL] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.cache_client = cache_client
        self.repository = repository
        self.ttl = ttl or TTL(settings.CACHE_SHOP_TTL_SECONDS)

    async def _load(self, _list_id: str) -> Optional[List[ShopType]]:
        shop_types = await self.repository.list_ordered_by_sort()
        # An empty table is cached as a null marker
        return shop_types or None

    async def query_type_list(self) -> List[ShopType]:
        """Get all shop types ordered by ``sort``."""
        shop_types = await self.cache_client.query_with_pass_through(
            CACHE_SHOP_TYPE_KEY, TYPE_LIST_ID, List[ShopType], self._load, self.ttl
        )
        return shop_types or []

    async def invalidate(self) -> bool:
        """Drop the cached list after shop types change."""
        return await self.cache_client.invalidate(
            str(CacheKey.build(CACHE_SHOP_TYPE_KEY, TYPE_LIST_ID))
        )
