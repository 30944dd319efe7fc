"""
Cache Repository Interfaces

Abstract interface of the key-value store the cache client is built on.
Only single-key atomic primitives are required.
"""

from abc import ABC, abstractmethod
from typing import Optional

from .value_objects import TTL


class KeyValueStore(ABC):
    """
    Minimal key-value store contract.

    Values are text (serialized JSON or the null marker). Implementations
    raise CacheStoreUnavailableException when the store cannot be reached.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: Optional[TTL] = None) -> None:
        """Store a value, with a physical TTL when one is given."""
        pass

    @abstractmethod
    async def set_if_absent(self, key: str, value: str, ttl: TTL) -> bool:
        """Atomically create the key with a TTL. Returns False if it existed."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the key. Returns True if something was deleted."""
        pass

    @abstractmethod
    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """Atomically delete the key only if it still holds ``expected``."""
        pass
