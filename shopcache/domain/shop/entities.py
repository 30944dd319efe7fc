"""
Shop Entities

Domain values served through the cache. Field names serialize in camelCase
to match the JSON already stored under ``cache:shop:*`` keys.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Shop(BaseModel):
    """A merchant shop."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[int] = None
    name: str
    type_id: Optional[int] = None
    images: Optional[str] = None
    area: Optional[str] = None
    address: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None
    avg_price: Optional[int] = None
    sold: Optional[int] = None
    comments: Optional[int] = None
    score: Optional[int] = None
    open_hours: Optional[str] = None
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None


class ShopType(BaseModel):
    """A shop category shown on the home page."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    icon: Optional[str] = None
    sort: int = 0
    create_time: Optional[datetime] = None
    update_time: Optional[datetime] = None
