"""
Dashboard - Timers.

============================================================
RESPONSIBILITY
============================================================
Asyncio timers used by the refresh coordinator.

- Debouncer: run a callback once input has been quiet for a delay
  (every trigger cancels and reschedules the pending run)
- PeriodicTimer: run a callback every N seconds until stopped

Both must be used from the event loop thread.
============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


AsyncCallback = Callable[[], Awaitable[None]]


class Debouncer:
    """
    Cancel-and-reschedule debounce.

    Usage:
        debouncer = Debouncer(0.2, coordinator.resmooth)
        debouncer.trigger()   # runs 200 ms after the last trigger
    """

    def __init__(self, delay_seconds: float, callback: AsyncCallback, name: str = "debounce"):
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds must be >= 0, got {delay_seconds}")
        self._delay = delay_seconds
        self._callback = callback
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self._firing: Optional[asyncio.Task] = None
        self._fired = 0

    @property
    def delay_seconds(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """A run is scheduled and its callback has not started."""
        task = self._task
        return task is not None and not task.done() and task is not self._firing

    @property
    def fire_count(self) -> int:
        return self._fired

    def trigger(self) -> None:
        """(Re)start the quiet period."""
        self.cancel()
        self._task = asyncio.create_task(self._run(), name=self._name)

    def cancel(self) -> None:
        """Drop the pending run, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def flush(self) -> None:
        """Run a pending callback now."""
        if self.pending:
            self.cancel()
            await self._fire()

    async def wait(self) -> None:
        """Wait for the scheduled run to finish."""
        task = self._task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        await asyncio.sleep(self._delay)
        self._firing = asyncio.current_task()
        try:
            await self._fire()
        finally:
            if self._firing is asyncio.current_task():
                self._firing = None

    async def _fire(self) -> None:
        self._fired += 1
        await self._callback()


class PeriodicTimer:
    """
    Fixed-interval timer.

    The callback's exceptions are logged and the timer keeps going.
    """

    def __init__(self, interval_seconds: float, callback: AsyncCallback, name: str = "periodic"):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {interval_seconds}")
        self._interval = interval_seconds
        self._callback = callback
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self._ticks = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def tick_count(self) -> int:
        return self._ticks

    def start(self) -> None:
        """Start ticking. No-op if already running."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self._name)
        logger.debug(f"{self._name} timer started ({self._interval}s)")

    def stop(self) -> None:
        """Stop ticking. No-op if not running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"{self._name} timer stopped")
        self._task = None

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._ticks += 1
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"{self._name} timer callback failed: {e}", exc_info=True)
