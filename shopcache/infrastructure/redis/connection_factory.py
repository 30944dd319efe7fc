"""
Redis Connection Factory

Builds the shared asyncio connection pool from settings and hands out
clients bound to it.
"""

import asyncio
from typing import Any, Dict, Optional

import structlog
from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from ...core.config import Settings, get_settings
from .exceptions import CacheStoreUnavailableException, RedisConfigurationException

logger = structlog.get_logger(__name__)


class RedisConnectionFactory:
    """Factory for the process-wide Redis connection pool."""

    def __init__(self, settings: Optional[Settings] = None):
        self._settings = settings or get_settings()
        self._pool: Optional[ConnectionPool] = None
        self._client: Optional[Redis] = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the connection pool and verify connectivity."""
        if self._client is not None:
            return

        async with self._lock:
            if self._client is not None:
                return

            try:
                pool = ConnectionPool.from_url(
                    self._settings.REDIS_URL,
                    max_connections=self._settings.REDIS_MAX_CONNECTIONS,
                    socket_connect_timeout=self._settings.REDIS_CONNECTION_TIMEOUT,
                    socket_timeout=self._settings.REDIS_OPERATION_TIMEOUT,
                    decode_responses=True,
                    encoding="utf-8",
                )
            except ValueError as e:
                raise RedisConfigurationException(
                    message=f"Invalid Redis URL: {e}",
                    config_key="REDIS_URL",
                    original_error=e,
                )

            client = Redis(connection_pool=pool)
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                await pool.disconnect()
                logger.error("redis_connection_failed", error=str(e))
                raise CacheStoreUnavailableException(
                    message="Redis connection failed",
                    operation="ping",
                    original_error=e,
                )

            self._pool = pool
            self._client = client
            logger.info(
                "redis_connection_factory_initialized",
                max_connections=self._settings.REDIS_MAX_CONNECTIONS,
            )

    async def get_client(self) -> Redis:
        """Return the shared client, initializing the pool on first use."""
        await self.initialize()
        return self._client

    async def close(self) -> None:
        """Close the pool and drop the shared client."""
        async with self._lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
            if self._pool is not None:
                await self._pool.disconnect()
                self._pool = None
            logger.info("redis_connection_factory_closed")

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "initialized": self._client is not None,
            "max_connections": self._settings.REDIS_MAX_CONNECTIONS,
        }
