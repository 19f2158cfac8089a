from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

from cardgen.core.config import settings
from cardgen.core.logging import get_logger

logger = get_logger(__name__)

JobCallable = Callable[[], Awaitable[None]]


class BackgroundQueue:
    """In-process async job queue with fixed concurrency.

    Jobs are fire-and-forget from the enqueuer's side. ``stop`` waits for
    queued and running jobs to settle (optionally bounded by
    ``drain_timeout``) before cancelling the workers.
    """

    def __init__(self, *, concurrency: int = 2, drain_timeout: Optional[float] = None) -> None:
        self.concurrency = max(1, int(concurrency))
        self.drain_timeout = drain_timeout
        self._queue: asyncio.Queue[JobCallable] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._started = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _worker(self, idx: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job()
            except Exception:  # noqa: BLE001
                # Jobs record their own failures; the worker must survive them
                logger.exception(f"Worker {idx} job failed")
            finally:
                self._queue.task_done()

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        for i in range(self.concurrency):
            self._workers.append(asyncio.create_task(self._worker(i)))
        logger.info(f"Background queue started with {self.concurrency} workers")

    async def stop(self) -> None:
        if self._started:
            try:
                await asyncio.wait_for(self._queue.join(), self.drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Queue drain timed out with {self.pending} jobs still queued"
                )
        for t in self._workers:
            t.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        self._started = False

    def enqueue(self, fn: JobCallable) -> None:
        self._queue.put_nowait(fn)


queue = BackgroundQueue(
    concurrency=settings.generation.queue_concurrency,
    drain_timeout=settings.generation.drain_timeout,
)
