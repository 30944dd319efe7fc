"""
Redis Circuit Breaker

Stops issuing store commands after repeated connection failures so a dead
Redis fails fast with CacheStoreUnavailableException instead of piling up
socket timeouts on every cache lookup.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

from .exceptions import RedisCircuitBreakerOpenException

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""

    CLOSED = "closed"  # Normal operation
    OPEN = "open"  # Failing, reject calls
    HALF_OPEN = "half_open"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    # Consecutive failures before opening
    failure_threshold: int = 5

    # Seconds to wait before probing again
    recovery_timeout: float = 60.0

    # Successful probes needed to close
    success_threshold: int = 1

    # Exception types counted as failures
    failure_exceptions: tuple = (
        ConnectionError,
        TimeoutError,
        OSError,
    )


@dataclass
class CircuitBreakerMetrics:
    """Counters for circuit breaker monitoring."""

    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    circuit_opens: int = 0


class RedisCircuitBreaker:
    """Circuit breaker guarding Redis commands."""

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.opened_at: Optional[float] = None
        self.metrics = CircuitBreakerMetrics()
        self._lock = asyncio.Lock()

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """
        Execute a coroutine function under circuit breaker protection.

        Raises:
            RedisCircuitBreakerOpenException: If the circuit is open
            Exception: Original exception from the call
        """
        async with self._lock:
            self.metrics.total_calls += 1
            if self.state == CircuitState.OPEN:
                if self._should_attempt_reset():
                    self.state = CircuitState.HALF_OPEN
                    self.success_count = 0
                    logger.info("circuit_breaker_half_open", failures=self.failure_count)
                else:
                    self.metrics.rejected_calls += 1
                    raise RedisCircuitBreakerOpenException()

        try:
            result = await func(*args, **kwargs)
        except self.config.failure_exceptions as e:
            await self._record_failure(type(e).__name__)
            raise

        await self._record_success()
        return result

    async def _record_success(self) -> None:
        async with self._lock:
            self.metrics.successful_calls += 1

            if self.state == CircuitState.HALF_OPEN:
                self.success_count += 1
                if self.success_count >= self.config.success_threshold:
                    self.state = CircuitState.CLOSED
                    self.failure_count = 0
                    self.success_count = 0
                    self.opened_at = None
                    logger.info("circuit_breaker_closed")
            else:
                self.failure_count = 0

    async def _record_failure(self, failure_type: str) -> None:
        async with self._lock:
            self.metrics.failed_calls += 1
            self.failure_count += 1

            if self.state == CircuitState.HALF_OPEN or (
                self.state == CircuitState.CLOSED
                and self.failure_count >= self.config.failure_threshold
            ):
                self.state = CircuitState.OPEN
                self.opened_at = self._clock()
                self.metrics.circuit_opens += 1
                logger.warning(
                    "circuit_breaker_opened",
                    failure_type=failure_type,
                    failure_count=self.failure_count,
                    threshold=self.config.failure_threshold,
                )

    def _should_attempt_reset(self) -> bool:
        if self.opened_at is None:
            return True
        return self._clock() - self.opened_at >= self.config.recovery_timeout

    def get_status(self) -> Dict[str, Any]:
        """Get current circuit breaker status for monitoring."""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "opened_at": self.opened_at,
            "metrics": {
                "total_calls": self.metrics.total_calls,
                "successful_calls": self.metrics.successful_calls,
                "failed_calls": self.metrics.failed_calls,
                "rejected_calls": self.metrics.rejected_calls,
                "circuit_opens": self.metrics.circuit_opens,
            },
        }

    async def reset(self) -> None:
        """Manually reset circuit breaker to closed state."""
        async with self._lock:
            self.state = CircuitState.CLOSED
            self.failure_count = 0
            self.success_count = 0
            self.opened_at = None
            logger.info("circuit_breaker_reset")
