"""
Shop Repository Interfaces

Backing store contracts for the shop domain. Implementations live with the
persistence layer; the cache only ever calls these through fallbacks.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .entities import Shop, ShopType


class ShopRepository(ABC):
    """Persistent shop storage."""

    @abstractmethod
    async def find_by_id(self, shop_id: int) -> Optional[Shop]:
        """Return the shop, or None when it does not exist."""
        pass

    @abstractmethod
    async def update(self, shop: Shop) -> bool:
        """Persist changes to an existing shop. Returns False if it does not exist."""
        pass


class ShopTypeRepository(ABC):
    """Persistent shop type storage."""

    @abstractmethod
    async def list_ordered_by_sort(self) -> List[ShopType]:
        """Return all shop types in ascending ``sort`` order."""
        pass
