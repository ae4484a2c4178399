"""Wall-clock time and repeating timers for the single-threaded event loop."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None] | None]


async def _invoke(callback: TimerCallback) -> None:
    result = callback()
    if asyncio.iscoroutine(result):
        await result


class TimerHandle(ABC):
    """A cancelable repeating timer.

    Cancelling from inside the timer's own callback lets that callback run to
    completion; the timer never fires again afterwards.
    """

    def __init__(self, interval_ms: int, callback: TimerCallback):
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.interval_ms = interval_ms
        self.callback = callback
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @abstractmethod
    def cancel(self) -> None:
        """Stop the timer. Safe to call more than once."""


class Clock(ABC):
    """Source of epoch-millisecond time and repeating callbacks."""

    @abstractmethod
    def now_ms(self) -> int:
        """Current wall-clock time in epoch milliseconds."""

    @abstractmethod
    def call_every(self, interval_ms: int, callback: TimerCallback) -> TimerHandle:
        """Invoke ``callback`` every ``interval_ms`` until the handle is cancelled."""


class _AsyncioTimer(TimerHandle):
    def __init__(self, interval_ms: int, callback: TimerCallback):
        super().__init__(interval_ms, callback)
        self._in_callback = False
        self._task: asyncio.Task | None = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while not self._cancelled:
            await asyncio.sleep(self.interval_ms / 1000)
            if self._cancelled:
                break

            self._in_callback = True
            try:
                await _invoke(self.callback)
            except Exception as e:
                logger.error(f"Error in timer callback: {e}")
            finally:
                self._in_callback = False

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        # A task must not cancel itself mid-callback, the loop exits on the flag
        if self._task and not self._in_callback:
            self._task.cancel()
        self._task = None


class AsyncioClock(Clock):
    """Real clock backed by ``time.time`` and asyncio tasks.

    ``call_every`` must be used from inside a running event loop.
    """

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_every(self, interval_ms: int, callback: TimerCallback) -> TimerHandle:
        return _AsyncioTimer(interval_ms, callback)


class _ManualTimer(TimerHandle):
    def __init__(self, interval_ms: int, callback: TimerCallback, due_ms: int, seq: int):
        super().__init__(interval_ms, callback)
        self.due_ms = due_ms
        self.seq = seq

    def cancel(self) -> None:
        self._cancelled = True


class ManualClock(Clock):
    """Deterministic clock whose time only moves when ``advance`` is awaited.

    Timers due at the same instant fire in the order they were armed.

    Usage:
        clock = ManualClock(start_ms=0)
        clock.call_every(1000, on_tick)
        await clock.advance(5000)  # on_tick runs five times
    """

    def __init__(self, start_ms: int = 0):
        self._now = start_ms
        self._timers: list[_ManualTimer] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def set_time(self, now_ms: int) -> None:
        """Jump the wall clock without firing timers (simulates a suspended process)."""
        self._now = now_ms

    def call_every(self, interval_ms: int, callback: TimerCallback) -> TimerHandle:
        timer = _ManualTimer(interval_ms, callback, self._now + interval_ms, next(self._seq))
        self._timers.append(timer)
        return timer

    @property
    def active_timers(self) -> int:
        """Number of armed, uncancelled timers."""
        return sum(1 for t in self._timers if not t.cancelled)

    async def advance(self, ms: int) -> None:
        """Move time forward by ``ms``, firing every timer that falls due."""
        target = self._now + ms

        while True:
            self._timers = [t for t in self._timers if not t.cancelled]
            due = [t for t in self._timers if t.due_ms <= target]
            if not due:
                break

            timer = min(due, key=lambda t: (t.due_ms, t.seq))
            self._now = timer.due_ms
            timer.due_ms += timer.interval_ms
            await _invoke(timer.callback)

        self._now = target
