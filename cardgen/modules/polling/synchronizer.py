"""Client-side polling of a generation until it settles or the client gives up.

One ``PollingSynchronizer`` owns at most one asyncio task. Each tick awaits
its fetch before sleeping, so ticks never overlap. The first fetch happens
immediately; later ones are spaced ``interval`` seconds apart measured from
the start of the previous tick.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import time
from typing import Any, Awaitable, Callable, Optional

from cardgen.core.logging import get_logger, log_context
from cardgen.modules.generation.models import (
    GenerationSnapshot,
    GenerationStatus,
    derive_status,
)

logger = get_logger(__name__)

POLL_INTERVAL_SECONDS = 2.0
MAX_POLL_TIME_SECONDS = 45.0

Fetcher = Callable[[int], Awaitable[GenerationSnapshot]]
SnapshotCallback = Callable[[GenerationSnapshot], Any]
StopCallback = Callable[["PollOutcome", Optional[GenerationSnapshot]], Any]


class PollOutcome(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    # The client stopped waiting; the generation may still finish server side
    TIMEOUT = "timeout"
    STOPPED = "stopped"


_TERMINAL_OUTCOMES = {
    GenerationStatus.COMPLETED: PollOutcome.COMPLETED,
    GenerationStatus.FAILED: PollOutcome.FAILED,
}


async def _invoke(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    try:
        result = callback(*args)
        if inspect.isawaitable(result):
            await result
    except Exception:  # noqa: BLE001
        logger.exception("Polling callback failed")


class PollingSynchronizer:
    def __init__(
        self,
        fetch: Fetcher,
        *,
        on_snapshot: Optional[SnapshotCallback] = None,
        on_stop: Optional[StopCallback] = None,
        interval: float = POLL_INTERVAL_SECONDS,
        max_time: float = MAX_POLL_TIME_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.fetch = fetch
        self.on_snapshot = on_snapshot
        self.on_stop = on_stop
        self.interval = interval
        self.max_time = max_time
        self._clock = clock
        self._sleep = sleep

        self.latest: Optional[GenerationSnapshot] = None
        self.outcome: Optional[PollOutcome] = None
        self.ticks = 0
        self._task: Optional[asyncio.Task[None]] = None
        self._run_id = 0
        # Run id whose loop was asked to stop from inside its own callback
        self._stop_run: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, generation_id: int) -> None:
        """Begin polling ``generation_id``; a poll already in progress is stopped first."""
        if self.running:
            self.stop()
        self._run_id += 1
        self.latest = None
        self.outcome = None
        self.ticks = 0
        self._task = asyncio.create_task(self._loop(self._run_id, generation_id))

    def stop(self) -> None:
        task = self._task
        if task is None or task.done() or self.outcome is not None:
            return
        if task is asyncio.current_task():
            # Called from a callback; the loop exits after the current tick
            self._stop_run = self._run_id
            return
        task.cancel()

    async def wait(self) -> Optional[PollOutcome]:
        # Follows restarts made from inside a callback
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})
        return self.outcome

    async def __aenter__(self) -> "PollingSynchronizer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.stop()
        await self.wait()

    async def _loop(self, run_id: int, generation_id: int) -> None:
        ctx = log_context(generation_id)
        started = self._clock()
        try:
            while True:
                if run_id != self._run_id:
                    return
                tick_start = self._clock()
                if tick_start - started > self.max_time:
                    logger.warning(
                        f"Gave up polling after {tick_start - started:.1f}s", extra=ctx
                    )
                    await self._finish(run_id, PollOutcome.TIMEOUT)
                    return

                self.ticks += 1
                try:
                    snapshot = await self.fetch(generation_id)
                except Exception as e:  # noqa: BLE001
                    logger.warning(f"Status fetch failed, will retry: {e}", extra=ctx)
                    snapshot = None

                if snapshot is not None:
                    self.latest = snapshot
                    await _invoke(self.on_snapshot, snapshot)
                    if run_id != self._run_id:
                        # on_snapshot restarted the poller
                        return
                    status = derive_status(snapshot.generation_meta, snapshot.log)
                    if status.is_terminal:
                        await self._finish(run_id, _TERMINAL_OUTCOMES[status])
                        return

                if self._stop_run == run_id:
                    await self._finish(run_id, PollOutcome.STOPPED)
                    return

                await self._sleep(max(0.0, tick_start + self.interval - self._clock()))
        except asyncio.CancelledError:
            await self._finish(run_id, PollOutcome.STOPPED)
            raise

    async def _finish(self, run_id: int, outcome: PollOutcome) -> None:
        if run_id != self._run_id or self.outcome is not None:
            # Replaced by a newer start(), or this run already settled
            return
        self.outcome = outcome
        await _invoke(self.on_stop, outcome, self.latest)
