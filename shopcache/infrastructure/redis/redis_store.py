"""
Redis Key-Value Store

KeyValueStore implementation on redis.asyncio. Every command runs through
the circuit breaker; connection and timeout errors surface as
CacheStoreUnavailableException.
"""

from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog
from opentelemetry import trace
from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
)

from ...core.config import Settings, get_settings
from ...domain.cache.repository_interfaces import KeyValueStore
from ...domain.cache.value_objects import TTL
from .circuit_breaker import CircuitBreakerConfig, RedisCircuitBreaker
from .exceptions import (
    CacheStoreUnavailableException,
    RedisCircuitBreakerOpenException,
    RedisOperationTimeoutException,
)

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

# Deletes KEYS[1] only while it still holds ARGV[1]
COMPARE_AND_DELETE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
end
return 0
"""


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed key-value store."""

    def __init__(
        self,
        redis: Redis,
        circuit_breaker: Optional[RedisCircuitBreaker] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self._redis = redis
        self._settings = settings
        self._circuit_breaker = circuit_breaker or RedisCircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=settings.CIRCUIT_BREAKER_FAILURE_THRESHOLD,
                recovery_timeout=float(settings.CIRCUIT_BREAKER_RECOVERY_TIMEOUT),
                failure_exceptions=(
                    RedisConnectionError,
                    RedisTimeoutError,
                    ConnectionRefusedError,
                ),
            )
        )
        self._compare_and_delete = redis.register_script(COMPARE_AND_DELETE_SCRIPT)

    @property
    def circuit_breaker(self) -> RedisCircuitBreaker:
        return self._circuit_breaker

    async def _execute(
        self, operation: str, key: str, func: Callable[..., Awaitable[T]], *args, **kwargs
    ) -> T:
        with tracer.start_as_current_span(f"redis.{operation}") as span:
            span.set_attribute("redis.operation", operation)
            span.set_attribute("redis.key", key)
            try:
                return await self._circuit_breaker.call(func, *args, **kwargs)
            except RedisCircuitBreakerOpenException:
                span.set_status(trace.Status(trace.StatusCode.ERROR, "Circuit breaker open"))
                raise
            except RedisTimeoutError as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.warning("redis_operation_timeout", operation=operation, key=key)
                raise RedisOperationTimeoutException(
                    operation=operation,
                    timeout_seconds=self._settings.REDIS_OPERATION_TIMEOUT,
                    key=key,
                    original_error=e,
                )
            except (RedisConnectionError, ConnectionRefusedError) as e:
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.warning(
                    "redis_operation_failed", operation=operation, key=key, error=str(e)
                )
                raise CacheStoreUnavailableException(
                    message=f"Redis operation '{operation}' failed",
                    operation=operation,
                    key=key,
                    original_error=e,
                )

    async def get(self, key: str) -> Optional[str]:
        return await self._execute("get", key, self._redis.get, key)

    async def set(self, key: str, value: str, ttl: Optional[TTL] = None) -> None:
        if ttl is None:
            await self._execute("set", key, self._redis.set, key, value)
        else:
            await self._execute("set", key, self._redis.set, key, value, ex=ttl.seconds)

    async def set_if_absent(self, key: str, value: str, ttl: TTL) -> bool:
        result = await self._execute(
            "set_nx", key, self._redis.set, key, value, nx=True, ex=ttl.seconds
        )
        return bool(result)

    async def delete(self, key: str) -> bool:
        deleted = await self._execute("delete", key, self._redis.delete, key)
        return deleted > 0

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        deleted = await self._execute(
            "compare_and_delete",
            key,
            self._compare_and_delete,
            keys=[key],
            args=[expected],
        )
        return int(deleted) > 0

    def get_status(self) -> Dict[str, Any]:
        return {"circuit_breaker": self._circuit_breaker.get_status()}
