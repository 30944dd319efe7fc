"""
Cache Services

Read-through cache client with its lock primitive and rebuild pool.
"""

from .cache_client import LOGICAL_EXPIRE, MUTEX, PASS_THROUGH, CacheClient
from .mutex import CacheMutex, LockLease
from .rebuild_scheduler import RebuildScheduler, RebuildTask

__all__ = [
    "CacheClient",
    "PASS_THROUGH",
    "MUTEX",
    "LOGICAL_EXPIRE",
    "CacheMutex",
    "LockLease",
    "RebuildScheduler",
    "RebuildTask",
]
