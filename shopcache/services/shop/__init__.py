"""Shop domain services."""

from .shop_service import ShopService
from .shop_type_service import ShopTypeService

__all__ = ["ShopService", "ShopTypeService"]
