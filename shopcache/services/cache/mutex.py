"""
Cache Mutex

Single-key mutual exclusion on the store's atomic set-if-absent. The lock
value is a token unique to each acquisition, and release only deletes the
key while it still holds that token, so a holder whose lock already expired
cannot remove a lock taken over by someone else. The physical TTL bounds
how long a crashed holder can block the key.
"""

from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import structlog

from ...domain.cache.repository_interfaces import KeyValueStore
from ...domain.cache.value_objects import TTL

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LockLease:
    """Proof of a successful acquisition."""

    key: str
    token: str


class CacheMutex:
    """Non-blocking lock built on SET NX EX."""

    def __init__(self, store: KeyValueStore, ttl: TTL):
        self._store = store
        self.ttl = ttl

    async def acquire(self, key: str) -> Optional[LockLease]:
        """
        Try once to take the lock.

        Returns:
            A lease when the lock was created, None when someone else holds it
        """
        token = uuid4().hex
        if await self._store.set_if_absent(key, token, self.ttl):
            logger.debug("cache_lock_acquired", lock_key=key)
            return LockLease(key=key, token=token)
        return None

    async def is_held(self, lease: LockLease) -> bool:
        """True while the lock key still carries this lease's token."""
        return await self._store.get(lease.key) == lease.token

    async def release(self, lease: LockLease) -> bool:
        """
        Release a lease.

        Returns:
            False when the lock had already expired or changed hands
        """
        released = await self._store.compare_and_delete(lease.key, lease.token)
        if not released:
            logger.warning("cache_lock_lost_before_release", lock_key=lease.key)
        return released

    async def force_release(self, key: str) -> bool:
        """Delete the lock regardless of owner."""
        return await self._store.delete(key)
