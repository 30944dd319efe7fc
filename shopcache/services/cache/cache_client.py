"""
Cache Client

Generic read-through cache in front of a slower backing store.

Three independently selectable read strategies:

- pass-through: caches confirmed-absent records as a short-lived null
  marker so repeated lookups of missing ids never reach the backing store
  (cache penetration).
- mutex: on a miss only the lock holder rebuilds; other callers sleep and
  retry (cache breakdown, favours freshness).
- logical expiration: hot keys carry an expiry timestamp inside the value;
  a stale hit returns the old payload immediately while one background
  rebuild per key refreshes it (cache breakdown, favours latency).
"""

import asyncio
import inspect
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar, Union

import structlog
from opentelemetry import trace

from ...constants import LOCK_KEY_PREFIX, NULL_MARKER, get_current_timestamp
from ...core.config import Settings, get_settings
from ...core.metrics import CacheMetrics
from ...domain.cache.entities import RedisData
from ...domain.cache.repository_interfaces import KeyValueStore
from ...domain.cache.serialization import (
    dump_value,
    load_envelope,
    load_payload,
    load_value,
    to_jsonable,
)
from ...domain.cache.value_objects import TTL, CacheKey
from ...infrastructure.redis.exceptions import (
    CacheDeserializationException,
    CacheLockTimeoutException,
    CacheStoreUnavailableException,
    RebuildQueueFullException,
)
from .mutex import CacheMutex, LockLease
from .rebuild_scheduler import RebuildScheduler

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

R = TypeVar("R")
ID = TypeVar("ID")

Fallback = Callable[[ID], Union[Optional[R], Awaitable[Optional[R]]]]

PASS_THROUGH = "pass_through"
MUTEX = "mutex"
LOGICAL_EXPIRE = "logical_expire"

# Plain lookup states
HIT = "hit"
NULL_HIT = "null_hit"
MISS = "miss"


class CacheClient:
    """
    Read-through cache client.

    Keys are ``key_prefix + str(id)``. Fallbacks may be plain functions or
    coroutine functions and return None when the backing store has no record.
    """

    def __init__(
        self,
        store: KeyValueStore,
        scheduler: Optional[RebuildScheduler] = None,
        settings: Optional[Settings] = None,
        metrics: Optional[CacheMetrics] = None,
        clock: Callable[[], datetime] = get_current_timestamp,
    ):
        settings = settings or get_settings()
        self.store = store
        self.settings = settings
        self.null_ttl = TTL(settings.CACHE_NULL_TTL_SECONDS)
        self.mutex = CacheMutex(store, TTL(settings.CACHE_LOCK_TTL_SECONDS))
        self.scheduler = scheduler or RebuildScheduler(
            workers=settings.CACHE_REBUILD_WORKERS,
            max_queue_size=settings.CACHE_REBUILD_QUEUE_SIZE,
        )
        self.metrics = metrics or CacheMetrics()
        self.bypass_on_store_failure = settings.CACHE_BYPASS_ON_STORE_FAILURE
        self.mutex_retry_interval = settings.MUTEX_RETRY_INTERVAL_MS / 1000
        self.mutex_max_retries = settings.MUTEX_MAX_RETRIES
        self._clock = clock

    # Writes

    async def set(self, key: str, value: Any, ttl: TTL) -> None:
        """Serialize ``value`` to JSON and store it with a physical TTL."""
        await self.store.set(key, dump_value(value), ttl)

    async def set_with_logical_expire(self, key: str, value: Any, ttl: TTL) -> None:
        """Store ``value`` in an envelope expiring ``ttl`` from now, without physical TTL."""
        envelope = RedisData.wrap(to_jsonable(value), ttl, now=self._clock())
        await self.store.set(key, envelope.to_json())

    async def invalidate(self, key: str) -> bool:
        """Delete a cached entry so the next read goes to the backing store."""
        deleted = await self.store.delete(key)
        logger.debug("cache_invalidated", key=key, deleted=deleted)
        return deleted

    # Strategies

    async def query_with_pass_through(
        self,
        key_prefix: str,
        id: ID,
        target_type: Type[R],
        fallback: Fallback,
        ttl: TTL,
    ) -> Optional[R]:
        """
        Read-through with null caching.

        A hit is deserialized and returned; a null marker returns None without
        touching the backing store; a miss calls ``fallback(id)`` once and
        caches either the value (for ``ttl``) or a null marker.

        Raises:
            CacheStoreUnavailableException: If Redis is down and bypass is disabled
        """
        key = str(CacheKey.build(key_prefix, id))

        with tracer.start_as_current_span("cache_client.query_with_pass_through") as span:
            span.set_attribute("cache.key", key)
            try:
                state, value = await self._read_plain(key, target_type, PASS_THROUGH)
            except CacheStoreUnavailableException as e:
                span.set_attribute("cache.outcome", "bypass")
                return await self._bypass_or_raise(e, PASS_THROUGH, id, fallback)

            span.set_attribute("cache.outcome", state)
            if state == HIT:
                return value
            if state == NULL_HIT:
                return None

            value = await self._call_fallback(fallback, id, PASS_THROUGH)
            await self._write_through(key, value, ttl)
            return value

    async def query_with_mutex(
        self,
        key_prefix: str,
        id: ID,
        target_type: Type[R],
        fallback: Fallback,
        ttl: TTL,
        lock_key_prefix: Optional[str] = None,
    ) -> Optional[R]:
        """
        Read-through where only the lock holder rebuilds a missing key.

        Callers that lose the lock race sleep and retry the lookup until the
        holder has written the entry.

        Raises:
            CacheLockTimeoutException: If the lock stayed taken for every retry
            CacheStoreUnavailableException: If Redis is down and bypass is disabled
        """
        key = str(CacheKey.build(key_prefix, id))
        lock_key = str(CacheKey.build(lock_key_prefix or LOCK_KEY_PREFIX + key_prefix, id))

        with tracer.start_as_current_span("cache_client.query_with_mutex") as span:
            span.set_attribute("cache.key", key)
            try:
                for attempt in range(1, self.mutex_max_retries + 1):
                    state, value = await self._read_plain(key, target_type, MUTEX)
                    if state == HIT:
                        return value
                    if state == NULL_HIT:
                        return None

                    lease = await self.mutex.acquire(lock_key)
                    if lease is None:
                        span.set_attribute("cache.lock_attempts", attempt)
                        self.metrics.record_lookup(MUTEX, "lock_wait")
                        await asyncio.sleep(self.mutex_retry_interval)
                        continue

                    try:
                        # Another holder may have rebuilt the key while we waited
                        state, value = await self._read_plain(
                            key, target_type, MUTEX, record=False
                        )
                        if state == HIT:
                            return value
                        if state == NULL_HIT:
                            return None

                        value = await self._call_fallback(fallback, id, MUTEX)
                        await self._write_through(key, value, ttl)
                        return value
                    finally:
                        await self._release_quietly(lease)

            except CacheStoreUnavailableException as e:
                span.set_attribute("cache.outcome", "bypass")
                return await self._bypass_or_raise(e, MUTEX, id, fallback)

            span.set_status(trace.Status(trace.StatusCode.ERROR, "lock timeout"))
            raise CacheLockTimeoutException(lock_key=lock_key, attempts=self.mutex_max_retries)

    async def query_with_logical_expire(
        self,
        key_prefix: str,
        id: ID,
        target_type: Type[R],
        fallback: Fallback,
        ttl: TTL,
        lock_key_prefix: Optional[str] = None,
    ) -> Optional[R]:
        """
        Stale-while-revalidate read for pre-warmed hot keys.

        A missing key returns None without touching the backing store. A fresh
        envelope returns its payload. A stale envelope returns its payload too,
        and the caller that wins the lock submits a background rebuild that
        writes a new envelope expiring ``ttl`` from its completion.

        Raises:
            CacheStoreUnavailableException: If Redis is down and bypass is disabled
        """
        key = str(CacheKey.build(key_prefix, id))
        lock_key = str(CacheKey.build(lock_key_prefix or LOCK_KEY_PREFIX + key_prefix, id))

        with tracer.start_as_current_span("cache_client.query_with_logical_expire") as span:
            span.set_attribute("cache.key", key)
            try:
                raw = await self.store.get(key)
            except CacheStoreUnavailableException as e:
                span.set_attribute("cache.outcome", "bypass")
                return await self._bypass_or_raise(e, LOGICAL_EXPIRE, id, fallback)

            if raw is None or raw == NULL_MARKER:
                # Hot keys are warmed out of band; a true miss is not rebuilt here
                span.set_attribute("cache.outcome", MISS)
                self.metrics.record_lookup(LOGICAL_EXPIRE, MISS)
                return None

            try:
                envelope = load_envelope(key, raw)
                value = load_payload(key, envelope.data, target_type)
            except CacheDeserializationException as e:
                span.set_attribute("cache.outcome", "corrupt")
                self.metrics.record_lookup(LOGICAL_EXPIRE, "corrupt")
                logger.warning("cache_entry_corrupt", key=key, error=str(e.__cause__ or e))
                await self._schedule_rebuild(key, lock_key, id, fallback, ttl)
                return None

            if not envelope.is_expired(self._clock()):
                span.set_attribute("cache.outcome", "fresh")
                self.metrics.record_lookup(LOGICAL_EXPIRE, "fresh")
                return value

            span.set_attribute("cache.outcome", "stale")
            self.metrics.record_lookup(LOGICAL_EXPIRE, "stale")
            submitted = await self._schedule_rebuild(key, lock_key, id, fallback, ttl)
            span.set_attribute("cache.rebuild_submitted", submitted)
            return value

    # Internals

    async def _read_plain(
        self, key: str, target_type: Type[R], strategy: str, record: bool = True
    ) -> Tuple[str, Optional[R]]:
        raw = await self.store.get(key)
        if raw is None:
            state, value = MISS, None
        elif raw == NULL_MARKER:
            state, value = NULL_HIT, None
        else:
            try:
                state, value = HIT, load_value(key, raw, target_type)
            except CacheDeserializationException as e:
                # Corrupt entries are rebuilt like a miss
                logger.warning("cache_entry_corrupt", key=key, error=str(e.__cause__ or e))
                state, value = MISS, None
                if record:
                    self.metrics.record_lookup(strategy, "corrupt")
                return state, value

        if record:
            self.metrics.record_lookup(strategy, state)
        return state, value

    async def _call_fallback(self, fallback: Fallback, id: Any, strategy: str) -> Any:
        self.metrics.record_fallback(strategy)
        result = fallback(id)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _write_through(self, key: str, value: Any, ttl: TTL) -> None:
        try:
            if value is None:
                await self.store.set(key, NULL_MARKER, self.null_ttl)
            else:
                await self.set(key, value, ttl)
        except CacheStoreUnavailableException as e:
            if not self.bypass_on_store_failure:
                raise
            logger.warning("cache_write_skipped", key=key, error=e.message)

    async def _bypass_or_raise(
        self,
        error: CacheStoreUnavailableException,
        strategy: str,
        id: Any,
        fallback: Fallback,
    ) -> Any:
        if not self.bypass_on_store_failure:
            logger.error("cache_store_unavailable", strategy=strategy, error=error.message)
            raise error

        logger.warning(
            "cache_store_unavailable_bypassing",
            strategy=strategy,
            error=error.message,
        )
        self.metrics.record_lookup(strategy, "bypass")
        return await self._call_fallback(fallback, id, strategy)

    async def _release_quietly(self, lease: LockLease) -> None:
        try:
            await self.mutex.release(lease)
        except CacheStoreUnavailableException as e:
            # The physical TTL frees the lock eventually
            logger.warning("cache_lock_release_failed", lock_key=lease.key, error=e.message)

    async def _schedule_rebuild(
        self, key: str, lock_key: str, id: Any, fallback: Fallback, ttl: TTL
    ) -> bool:
        try:
            lease = await self.mutex.acquire(lock_key)
        except CacheStoreUnavailableException as e:
            logger.warning("cache_rebuild_lock_unavailable", key=key, error=e.message)
            return False

        if lease is None:
            logger.debug("cache_rebuild_in_progress", key=key)
            return False

        try:
            self.scheduler.submit(
                f"rebuild:{key}",
                lambda: self._rebuild_logical(key, lease, id, fallback, ttl),
            )
        except RebuildQueueFullException:
            await self._release_quietly(lease)
            return False

        return True

    async def _rebuild_logical(
        self, key: str, lease: LockLease, id: Any, fallback: Fallback, ttl: TTL
    ) -> None:
        start_time = time.monotonic()
        result = "success"
        held = True

        with tracer.start_as_current_span("cache_client.rebuild") as span:
            span.set_attribute("cache.key", key)
            try:
                # Queue wait counts against the lock TTL
                if not await self.mutex.is_held(lease):
                    held = False
                    result = "lease_lost"
                    logger.warning("cache_rebuild_lease_lost", key=key, lock_key=lease.key)
                    return

                value = await self._call_fallback(fallback, id, LOGICAL_EXPIRE)
                if value is None:
                    result = "missing"
                    await self.store.set(key, NULL_MARKER, self.null_ttl)
                else:
                    await self.set_with_logical_expire(key, value, ttl)
            except Exception as e:
                # Callers already returned the stale payload; record and move on
                result = "failure"
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error("cache_rebuild_failed", key=key, error=str(e), exc_info=True)
            finally:
                if held:
                    await self._release_quietly(lease)
                duration = time.monotonic() - start_time
                self.metrics.record_rebuild(result, duration)
                span.set_attribute("cache.rebuild_result", result)
                logger.debug(
                    "cache_rebuild_finished",
                    key=key,
                    result=result,
                    duration_ms=round(duration * 1000, 2),
                )

    async def close(self) -> None:
        """Stop the rebuild pool, letting queued rebuilds finish first."""
        await self.scheduler.stop()
