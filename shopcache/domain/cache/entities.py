"""
Cache Entities

Envelope stored under hot keys in logical-expiration mode. The key has no
physical TTL; staleness is decided by comparing ``expireTime`` to now.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...constants import get_current_timestamp
from .value_objects import TTL


class RedisData(BaseModel):
    """Logical-expiration envelope: ``{"data": ..., "expireTime": ...}``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    data: Any = None
    expire_time: datetime = Field(alias="expireTime")

    @field_validator("expire_time")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so comparisons never mix kinds."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @classmethod
    def wrap(
        cls, data: Any, ttl: TTL, now: Optional[datetime] = None
    ) -> "RedisData":
        """Wrap JSON-compatible ``data`` with an expiry ``ttl`` from now."""
        now = now or get_current_timestamp()
        return cls(data=data, expire_time=now + ttl.as_timedelta())

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the logical expiry is not in the future."""
        now = now or get_current_timestamp()
        return self.expire_time <= now

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str) -> "RedisData":
        return cls.model_validate_json(raw)
