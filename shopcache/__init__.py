"""
shopcache - read-through Redis cache client.

Protects a slower backing store from cache penetration (null caching),
cache breakdown (mutex or logical expiration with asynchronous rebuild)
and serves stale data while hot keys are rebuilt.
"""

__version__ = "0.1.0"
