"""
Rebuild Scheduler

Fixed-size pool of asyncio workers draining a bounded queue of cache
rebuild tasks. Submission never blocks the caller: when the queue is full
the task is rejected with RebuildQueueFullException.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog
from opentelemetry import trace

from ...infrastructure.redis.exceptions import RebuildQueueFullException

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class RebuildTask:
    """A queued unit of rebuild work."""

    name: str
    factory: Callable[[], Awaitable[Any]]
    submitted_at: float = field(default_factory=time.monotonic)


class RebuildScheduler:
    """
    Bounded worker pool for fire-and-forget rebuilds.

    Tasks are independent and unordered. Workers start lazily on the first
    submission, inside the running event loop.
    """

    def __init__(
        self,
        workers: int = 10,
        max_queue_size: int = 1000,
        pool_name: str = "cache-rebuild",
    ):
        """
        Initialize rebuild scheduler.

        Args:
            workers: Number of concurrent worker tasks
            max_queue_size: Maximum number of waiting tasks
            pool_name: Pool identifier used in logs and task names
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if max_queue_size < 1:
            raise ValueError("max_queue_size must be at least 1")

        self.workers = workers
        self.max_queue_size = max_queue_size
        self.pool_name = pool_name

        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_queue_size)
        self._worker_tasks: List[asyncio.Task] = []
        self._running = False
        self._stats = {
            "tasks_submitted": 0,
            "tasks_rejected": 0,
            "tasks_completed": 0,
            "tasks_failed": 0,
            "last_error": None,
        }

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Spawn the worker tasks. Must be called from a running event loop."""
        if self._running:
            return

        self._running = True
        for i in range(self.workers):
            worker_id = f"{self.pool_name}-{i}"
            self._worker_tasks.append(
                asyncio.create_task(self._worker_loop(worker_id), name=worker_id)
            )

        logger.info(
            "rebuild_scheduler_started",
            pool_name=self.pool_name,
            workers=self.workers,
            max_queue_size=self.max_queue_size,
        )

    def submit(self, name: str, factory: Callable[[], Awaitable[Any]]) -> None:
        """
        Enqueue a rebuild without waiting for it.

        Raises:
            RebuildQueueFullException: If the queue is at capacity
        """
        if not self._running:
            self.start()

        try:
            self._queue.put_nowait(RebuildTask(name=name, factory=factory))
        except asyncio.QueueFull:
            self._stats["tasks_rejected"] += 1
            logger.warning(
                "rebuild_task_rejected",
                pool_name=self.pool_name,
                task_name=name,
                queue_size=self.max_queue_size,
            )
            raise RebuildQueueFullException(task_name=name, queue_size=self.max_queue_size)

        self._stats["tasks_submitted"] += 1

    async def _worker_loop(self, worker_id: str) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._run_task(worker_id, task)
            finally:
                self._queue.task_done()

    async def _run_task(self, worker_id: str, task: RebuildTask) -> None:
        with tracer.start_as_current_span("rebuild_scheduler.run_task") as span:
            span.set_attribute("worker_id", worker_id)
            span.set_attribute("task_name", task.name)
            span.set_attribute("queue_wait_ms", (time.monotonic() - task.submitted_at) * 1000)

            try:
                await task.factory()
                self._stats["tasks_completed"] += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._stats["tasks_failed"] += 1
                self._stats["last_error"] = f"{task.name}: {e}"
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "rebuild_task_failed",
                    worker_id=worker_id,
                    task_name=task.name,
                    error=str(e),
                    exc_info=True,
                )

    async def drain(self) -> None:
        """Wait until every queued task has finished."""
        await self._queue.join()

    async def stop(self, graceful_timeout: float = 30.0) -> None:
        """
        Stop the pool.

        Args:
            graceful_timeout: Seconds to let queued tasks finish before cancelling
        """
        if not self._running:
            return

        try:
            await asyncio.wait_for(self.drain(), timeout=graceful_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "rebuild_scheduler_shutdown_timeout",
                pool_name=self.pool_name,
                pending=self._queue.qsize(),
            )

        for task in self._worker_tasks:
            task.cancel()
        await asyncio.gather(*self._worker_tasks, return_exceptions=True)
        self._worker_tasks.clear()
        self._running = False

        logger.info("rebuild_scheduler_stopped", pool_name=self.pool_name)

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            "pool_name": self.pool_name,
            "running": self._running,
            "workers": self.workers,
            "queued": self._queue.qsize(),
            "max_queue_size": self.max_queue_size,
            **self._stats,
        }

    async def __aenter__(self) -> "RebuildScheduler":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
