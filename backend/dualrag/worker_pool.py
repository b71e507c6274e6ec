"""
Graph Build Worker Pool

Bounded asyncio queue drained by a fixed number of supervised workers.
A failing job is logged and handed to its error callback; the worker keeps
running.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from .errors import QueueFullError

logger = logging.getLogger(__name__)


@dataclass
class BuildJob:
    """A unit of background work"""
    name: str
    run: Callable[[], Awaitable[None]]
    on_error: Optional[Callable[[BaseException], Awaitable[None]]] = None


class GraphBuildQueue:
    """Fixed-size pool of workers consuming BuildJobs"""

    def __init__(self, workers: int = 2, maxsize: int = 100):
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self.workers = workers
        self.maxsize = maxsize
        self._queue: Optional[asyncio.Queue] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue else 0

    async def start(self) -> None:
        if self._tasks:
            return
        self._queue = asyncio.Queue(maxsize=self.maxsize)
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"graph-build-worker-{i}")
            for i in range(self.workers)
        ]
        logger.info(f"Graph build pool started with {self.workers} workers")

    def submit(self, job: BuildJob) -> None:
        """Enqueue a job without waiting"""
        if self._queue is None:
            raise QueueFullError("Graph build pool is not running")
        try:
            self._queue.put_nowait(job)
        except asyncio.QueueFull:
            logger.error(f"Graph build queue full, rejecting job {job.name}")
            raise QueueFullError(f"Graph build queue is full ({self.maxsize} pending)")
        logger.debug(f"Queued job {job.name} ({self._queue.qsize()} pending)")

    async def join(self) -> None:
        """Wait until every submitted job has finished"""
        if self._queue is not None:
            await self._queue.join()

    async def stop(self) -> None:
        """Drain pending jobs, then cancel the workers"""
        if not self._tasks:
            return
        await self.join()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        self._queue = None
        logger.info("Graph build pool stopped")

    async def _worker(self, worker_id: int) -> None:
        queue = self._queue
        while True:
            job: BuildJob = await queue.get()
            try:
                await self._run_job(worker_id, job)
            finally:
                queue.task_done()

    async def _run_job(self, worker_id: int, job: BuildJob) -> None:
        logger.info(f"Worker {worker_id} running {job.name}")
        try:
            await job.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Job {job.name} failed: {e}")
            if job.on_error is None:
                return
            try:
                await job.on_error(e)
            except Exception as handler_error:
                logger.error(f"Error handler for {job.name} failed: {handler_error}")
