"""Completion-gated polling of the markets listing."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from .models import PollCycleResult, RetryStatus
from .retry import RetryScheduler, Sleeper
from .store import DatasetStore

CRASH_MESSAGE = "Failed to fetch cryptocurrency data"


class PollLoop:
    """Runs one retry cycle to settlement, waits the interval, and repeats.

    The next cycle is only armed once the previous one has settled, so two
    cycles never overlap. After :meth:`stop` nothing more is published, even if
    a fetch that was in flight completes afterwards.
    """

    def __init__(
        self,
        scheduler: RetryScheduler,
        store: DatasetStore,
        interval: timedelta = timedelta(seconds=60),
        sleep: Sleeper = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.scheduler = scheduler
        self.store = store
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._cycle_lock = asyncio.Lock()
        self._closed = False
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> PollCycleResult:
        """Run a single cycle and hand its result to the store."""

        async with self._cycle_lock:
            result = await self.scheduler.run_cycle(on_status=self._publish_progress)
            self.cycles += 1
            if self._closed:
                self.logger.debug("Discarding result of torn-down loop", extra={"event": "result_discarded"})
                return result
            self.store.publish(result)
            return result

    async def run(self) -> None:
        """Poll until cancelled."""

        while not self._closed:
            try:
                await self.run_once()
            except Exception as exc:
                self.logger.exception(
                    "Poll cycle crashed: %s", exc,
                    extra={"event": "cycle_crashed", "endpoint": self.scheduler.endpoint.value},
                )
                self._publish_crash(exc)
            if self._closed:
                break
            self.logger.debug(
                "Next cycle in %ss", self.interval.total_seconds(),
                extra={"event": "poll_scheduled", "endpoint": self.scheduler.endpoint.value},
            )
            await self._sleep(self.interval.total_seconds())

    def start(self) -> asyncio.Task:
        """Launch :meth:`run` as a background task on the running loop."""

        if self.running:
            assert self._task is not None
            return self._task
        self._closed = False
        self._task = asyncio.create_task(self.run(), name="marketwatch-poll-loop")
        return self._task

    async def stop(self) -> None:
        """Cancel the loop and any pending fetch or timer."""

        self._closed = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.logger.info("Poll loop stopped", extra={"event": "poll_stopped", "cycles": self.cycles})

    def _publish_crash(self, exc: Exception) -> None:
        self.cycles += 1
        if self._closed:
            return
        self.store.publish(
            PollCycleResult(
                endpoint=self.scheduler.endpoint,
                settled_at=datetime.now(timezone.utc),
                error=CRASH_MESSAGE,
                detail=f"{exc.__class__.__name__}: {exc}",
            )
        )

    def _publish_progress(self, status: RetryStatus) -> None:
        if self._closed:
            return
        self.store.publish_progress(status)


__all__ = ["PollLoop"]
