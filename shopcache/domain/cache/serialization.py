"""
Cache value serialization.

Values are stored as JSON text. Target types are anything pydantic can
validate: models, builtin containers, or parametrized generics such as
``list[ShopType]``.
"""

from functools import lru_cache
from typing import Any, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from ...infrastructure.redis.exceptions import CacheDeserializationException
from .entities import RedisData

R = TypeVar("R")


@lru_cache(maxsize=256)
def _adapter(target_type: Any) -> TypeAdapter:
    return TypeAdapter(target_type)


def _type_name(target_type: Any) -> str:
    return getattr(target_type, "__name__", None) or str(target_type)


def to_jsonable(value: Any) -> Any:
    """Convert a domain value into JSON-compatible Python data."""
    return _adapter(type(value)).dump_python(value, mode="json", by_alias=True)


def dump_value(value: Any) -> str:
    """Serialize a domain value to JSON text."""
    return _adapter(type(value)).dump_json(value, by_alias=True).decode("utf-8")


def load_value(key: str, raw: str, target_type: Type[R]) -> R:
    """
    Deserialize JSON text into ``target_type``.

    Raises:
        CacheDeserializationException: If the text is not valid for the type
    """
    try:
        return _adapter(target_type).validate_json(raw)
    except (ValidationError, ValueError) as e:
        raise CacheDeserializationException(
            key=key, target_type=_type_name(target_type), original_error=e
        )


def load_payload(key: str, data: Any, target_type: Type[R]) -> R:
    """Validate an already-decoded envelope payload against ``target_type``."""
    try:
        return _adapter(target_type).validate_python(data)
    except (ValidationError, ValueError) as e:
        raise CacheDeserializationException(
            key=key, target_type=_type_name(target_type), original_error=e
        )


def load_envelope(key: str, raw: str) -> RedisData:
    """Decode a logical-expiration envelope."""
    try:
        return RedisData.from_json(raw)
    except (ValidationError, ValueError) as e:
        raise CacheDeserializationException(
            key=key, target_type=RedisData.__name__, original_error=e
        )
