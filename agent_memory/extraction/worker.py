"""Detached execution of extraction cycles: in-process worker pool or Celery."""

from __future__ import annotations

import asyncio
import contextlib
from abc import ABC, abstractmethod

from ..utils.logging_config import get_logger
from ..utils.metrics import EXTRACTION_JOBS_DROPPED
from .pipeline import ExtractionJob, ExtractionPipeline

logger = get_logger(__name__)


class ExtractionDispatcher(ABC):
    """Accepts jobs without waiting for them. Best effort; no delivery guarantee."""

    @abstractmethod
    def submit(self, job: ExtractionJob) -> bool:
        """Hand off ``job``; return False if it was dropped. Must not raise."""
        ...

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class ExtractionWorkerPool(ExtractionDispatcher):
    """Bounded asyncio queue drained by a fixed number of worker tasks."""

    def __init__(
        self,
        pipeline: ExtractionPipeline,
        concurrency: int = 4,
        queue_size: int = 1000,
        shutdown_grace_seconds: float = 5.0,
    ) -> None:
        self.pipeline = pipeline
        self.concurrency = concurrency
        self.shutdown_grace_seconds = shutdown_grace_seconds
        self._queue: asyncio.Queue[ExtractionJob] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker_loop(i), name=f"extraction-worker-{i}")
            for i in range(self.concurrency)
        ]
        logger.info("extraction_pool_started", concurrency=self.concurrency)

    def submit(self, job: ExtractionJob) -> bool:
        if not self._running:
            EXTRACTION_JOBS_DROPPED.labels(reason="not_running").inc()
            logger.warning("extraction_job_dropped", reason="not_running", **job.to_dict())
            return False
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            EXTRACTION_JOBS_DROPPED.labels(reason="queue_full").inc()
            logger.warning("extraction_job_dropped", reason="queue_full", **job.to_dict())
            return False
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Drain queued jobs for up to the grace period, then cancel the workers."""
        if not self._running:
            return
        self._running = False
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.shutdown_grace_seconds)
        except TimeoutError:
            logger.warning("extraction_pool_drain_timeout", pending=self._queue.qsize())
        for task in self._workers:
            task.cancel()
        for task in self._workers:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._workers = []
        logger.info("extraction_pool_stopped")

    async def _worker_loop(self, worker_id: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await self.pipeline.run_cycle(job)
            except Exception:
                logger.exception("extraction_worker_error", worker_id=worker_id, **job.to_dict())
            finally:
                self._queue.task_done()


class CeleryDispatcher(ExtractionDispatcher):
    """Sends jobs to the Celery worker through the Redis broker.

    ``delay()`` talks to the broker synchronously, so inside a running event
    loop the send happens on the default executor and ``submit`` returns once
    it is scheduled. Broker failures there are logged and counted like any
    other drop.
    """

    def __init__(self) -> None:
        self._inflight: set[asyncio.Future] = set()

    def submit(self, job: ExtractionJob) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._send(job)
        future = loop.run_in_executor(None, self._send, job)
        self._inflight.add(future)
        future.add_done_callback(self._inflight.discard)
        return True

    async def stop(self) -> None:
        """Wait for sends still running on the executor."""
        if self._inflight:
            await asyncio.gather(*self._inflight)

    def _send(self, job: ExtractionJob) -> bool:
        from ..celery_app import run_extraction_task

        try:
            run_extraction_task.delay(**job.to_dict())
        except Exception as e:
            EXTRACTION_JOBS_DROPPED.labels(reason="dispatch_error").inc()
            logger.warning("extraction_job_dropped", reason="dispatch_error", error=str(e), **job.to_dict())
            return False
        return True
