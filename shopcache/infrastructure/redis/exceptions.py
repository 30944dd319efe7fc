"""
Cache Infrastructure Exceptions

Domain-specific exceptions for cache and Redis operations.
Store failures are raised, never converted into cache misses.
"""

from typing import Optional, Any, Dict


class CacheException(Exception):
    """Base exception for cache-related errors.

    All cache operations should raise this or its subclasses.
    Never swallow store exceptions - always preserve context.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        if original_error:
            self.details["original_error"] = str(original_error)
            self.details["original_error_type"] = type(original_error).__name__
        super().__init__(self.message)
        # Preserve exception context for debugging (exception chaining)
        if original_error:
            self.__cause__ = original_error


class CacheStoreUnavailableException(CacheException):
    """Raised when the key-value store cannot be reached."""

    def __init__(
        self,
        message: str = "Cache store unavailable",
        operation: Optional[str] = None,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if operation:
            details["operation"] = operation
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            error_code="CACHE_STORE_UNAVAILABLE",
            details=details,
            original_error=original_error,
        )


class RedisOperationTimeoutException(CacheStoreUnavailableException):
    """Raised when a Redis operation times out."""

    def __init__(
        self,
        operation: str,
        timeout_seconds: float,
        key: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=f"Redis operation '{operation}' timed out after {timeout_seconds}s",
            operation=operation,
            key=key,
            original_error=original_error,
        )
        self.error_code = "REDIS_TIMEOUT_ERROR"
        self.details["timeout_seconds"] = timeout_seconds


class RedisCircuitBreakerOpenException(CacheStoreUnavailableException):
    """Raised when the Redis circuit breaker is open."""

    def __init__(
        self, message: str = "Redis circuit breaker is open - service unavailable"
    ):
        super().__init__(message=message)
        self.error_code = "REDIS_CIRCUIT_BREAKER_OPEN"
        self.details["service_status"] = "unavailable"


class RedisConfigurationException(CacheException):
    """Raised when Redis configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {}
        if config_key:
            details["config_key"] = config_key
        if config_value is not None:
            details["config_value"] = str(config_value)

        super().__init__(
            message=message,
            error_code="REDIS_CONFIGURATION_ERROR",
            details=details,
            original_error=original_error,
        )


class CacheDeserializationException(CacheException):
    """Raised when a cached entry cannot be decoded into the requested type."""

    def __init__(
        self,
        key: str,
        target_type: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = {"key": key}
        if target_type:
            details["target_type"] = target_type

        super().__init__(
            message=f"Corrupt or incompatible cache entry: {key}",
            error_code="CACHE_DESERIALIZATION_ERROR",
            details=details,
            original_error=original_error,
        )


class RebuildQueueFullException(CacheException):
    """Raised when the rebuild scheduler rejects a task."""

    def __init__(self, task_name: str, queue_size: int):
        super().__init__(
            message=f"Rebuild queue full ({queue_size}), rejected task: {task_name}",
            error_code="REBUILD_QUEUE_FULL",
            details={"task_name": task_name, "queue_size": queue_size},
        )


class CacheLockTimeoutException(CacheException):
    """Raised when the blocking mutex strategy gives up waiting for a lock."""

    def __init__(self, lock_key: str, attempts: int):
        super().__init__(
            message=f"Could not acquire cache lock {lock_key} after {attempts} attempts",
            error_code="CACHE_LOCK_TIMEOUT",
            details={"lock_key": lock_key, "attempts": attempts},
        )
