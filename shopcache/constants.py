"""
Shop Cache Global Constants

Centralized key layout and default timings shared by the cache client and
the domain services.
"""

from datetime import datetime, timezone

# Key prefixes
CACHE_SHOP_KEY = "cache:shop:"
LOCK_SHOP_KEY = "lock:shop:"
CACHE_SHOP_TYPE_KEY = "cache:shop-type:"
LOCK_KEY_PREFIX = "lock:"

# Cached value representing a confirmed-absent backing store record
NULL_MARKER = ""

# Default timings (seconds)
CACHE_NULL_TTL = 2 * 60
CACHE_SHOP_TTL = 30 * 60
LOCK_TTL = 10

# Default rebuild pool size
REBUILD_WORKERS = 10


def get_current_timestamp() -> datetime:
    """Get current timestamp with UTC timezone."""
    return datetime.now(timezone.utc)
