"""
Redis Infrastructure Module

Redis-backed key-value store with connection pooling, circuit breaker
protection and a cache exception hierarchy.
"""

from .circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerMetrics,
    CircuitState,
    RedisCircuitBreaker,
)
from .connection_factory import RedisConnectionFactory
from .exceptions import (
    CacheDeserializationException,
    CacheException,
    CacheLockTimeoutException,
    CacheStoreUnavailableException,
    RebuildQueueFullException,
    RedisCircuitBreakerOpenException,
    RedisConfigurationException,
    RedisOperationTimeoutException,
)
from .redis_store import RedisKeyValueStore

__all__ = [
    # Store
    "RedisKeyValueStore",
    "RedisConnectionFactory",
    # Circuit breaker
    "RedisCircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitState",
    "CircuitBreakerMetrics",
    # Exceptions
    "CacheException",
    "CacheStoreUnavailableException",
    "RedisOperationTimeoutException",
    "RedisCircuitBreakerOpenException",
    "RedisConfigurationException",
    "CacheDeserializationException",
    "RebuildQueueFullException",
    "CacheLockTimeoutException",
]
