"""Daily scheduling at UTC midnight."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, time, timedelta

from pricesync.core.calendar import as_utc, utc_now

logger = logging.getLogger(__name__)


def next_utc_midnight(now: datetime) -> datetime:
    """First UTC day boundary strictly after ``now``."""
    current = as_utc(now)
    tomorrow = current.date() + timedelta(days=1)
    return datetime.combine(tomorrow, time.min, tzinfo=current.tzinfo)


def ms_until_next_utc_midnight(now: datetime) -> int:
    """Milliseconds from ``now`` to the next UTC midnight.

    Naive datetimes are interpreted as UTC. Sub-millisecond remainders
    round up, so the result is always at least 1.
    """
    delta = next_utc_midnight(now) - as_utc(now)
    return -(-delta // timedelta(milliseconds=1))


class DailyScheduler:
    """Runs a coroutine callback at every UTC midnight.

    The delay is recomputed from the clock before each firing, so a slow
    callback or a suspended host never shifts later runs off midnight.
    A failing callback is logged and the schedule continues.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        clock: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._callback = callback
        self._clock = clock
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._next_run_at: datetime | None = None
        self.runs = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def next_run_at(self) -> datetime | None:
        """When the pending firing is due, or None if not armed."""
        return self._next_run_at if self.running else None

    def arm(self) -> asyncio.Task:
        """Start the schedule on the running event loop. Idempotent."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._loop(), name="pricesync-daily")
        return self._task

    async def stop(self) -> None:
        """Cancel the schedule and wait for it to wind down."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self._next_run_at = None

    async def _sleep_until(self, moment: datetime) -> None:
        # Timers may wake early; never fire before the clock shows the new day.
        while True:
            remaining = (moment - as_utc(self._clock())).total_seconds()
            if remaining <= 0:
                return
            await self._sleep(remaining)

    async def _loop(self) -> None:
        while True:
            self._next_run_at = next_utc_midnight(self._clock())
            logger.info("Next fetch scheduled for %s", self._next_run_at.isoformat())
            await self._sleep_until(self._next_run_at)

            self.runs += 1
            try:
                await self._callback()
            except Exception:
                logger.exception("Scheduled run %d failed", self.runs)
