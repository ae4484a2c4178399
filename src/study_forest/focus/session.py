"""Focus/break session state machine with restart-safe countdown."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable

from study_forest.core.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)

TICK_MS = 1000

# Default durations
FOCUS_DURATION_MS = 2 * 60 * 60 * 1000
BREAK_DURATION_MS = 30 * 60 * 1000


class Phase(Enum):
    """Timed segment of a cycle."""
    FOCUS = "focus"
    BREAK = "break"


@dataclass
class Session:
    """The active cycle. Absent (``None``) while idle."""
    phase: Phase
    start_timestamp: int  # epoch ms
    total_duration_ms: int
    remaining_ms: int
    is_paused: bool = False

    @property
    def elapsed_ms(self) -> int:
        return self.total_duration_ms - self.remaining_ms


def format_countdown(milliseconds: int) -> str:
    """Format milliseconds as HH:MM:SS."""
    total_seconds = max(0, milliseconds) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration(milliseconds: int) -> str:
    """Format a phase length as "2h 0m" or "30m"."""
    total_minutes = max(0, milliseconds) // 60000
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def progress_percent(session: Session | None) -> float:
    """Progress through the current phase (0-100)."""
    if session is None or session.total_duration_ms <= 0:
        return 0.0
    return min(100.0, max(0.0, session.elapsed_ms / session.total_duration_ms * 100))


PhaseCompleteCallback = Callable[[Session, int, Session | None], Awaitable[None] | None]


class SessionTimer:
    """Focus -> break -> idle state machine.

    Usage:
        timer = SessionTimer(clock)
        timer.on_phase_complete = lambda done, ended_at, nxt: print(done.phase)

        await timer.start_focus()
        await timer.pause()
        await timer.resume()
        await timer.stop()

    While running, each tick subtracts exactly one second. Wall-clock time is
    only consulted by ``restore`` to account for the time the process was not
    running.
    """

    def __init__(
        self,
        clock: Clock,
        focus_duration_ms: int = FOCUS_DURATION_MS,
        break_duration_ms: int = BREAK_DURATION_MS,
    ):
        self._clock = clock
        self.focus_duration_ms = focus_duration_ms
        self.break_duration_ms = break_duration_ms

        self._session: Session | None = None
        self._tick_handle: TimerHandle | None = None

        # Callbacks
        self.on_phase_complete: PhaseCompleteCallback | None = None
        self.on_change: Callable[[Session | None], Awaitable[None] | None] | None = None

    @property
    def session(self) -> Session | None:
        """Current session (copy), or None when idle."""
        return replace(self._session) if self._session else None

    @property
    def is_active(self) -> bool:
        return self._session is not None

    @property
    def is_running(self) -> bool:
        return self._session is not None and not self._session.is_paused

    @property
    def is_paused(self) -> bool:
        return self._session is not None and self._session.is_paused

    async def start_focus(self) -> None:
        """Begin a new cycle, replacing any session already in progress."""
        if self._session is not None:
            logger.info("Session already active, stopping it first")
            await self.stop()

        self._session = self._new_session(Phase.FOCUS, self.focus_duration_ms)
        self._arm_tick()

        logger.info("Focus phase started")
        await self._notify_change()

    async def pause(self) -> None:
        """Freeze the countdown."""
        if self._session is None or self._session.is_paused:
            return

        self._cancel_tick()
        self._session.is_paused = True

        logger.info(f"Session paused: {format_countdown(self._session.remaining_ms)} left")
        await self._notify_change()

    async def resume(self) -> None:
        """Continue a paused countdown from its frozen remaining time."""
        if self._session is None or not self._session.is_paused:
            return

        self._session.is_paused = False
        # Re-anchor so restart reconciliation ignores time spent paused
        self._session.start_timestamp = self._clock.now_ms() - self._session.elapsed_ms
        self._arm_tick()

        logger.info("Session resumed")
        await self._notify_change()

    async def stop(self) -> None:
        """Abandon the cycle without recording the unfinished phase."""
        self._cancel_tick()
        if self._session is None:
            return

        self._session = None
        logger.info("Session stopped")
        await self._notify_change()

    async def restore(self, session: Session) -> None:
        """Adopt a session loaded from storage.

        Running sessions are reconciled against the wall clock. A phase whose
        time ran out while the process was gone is completed immediately.
        """
        self._cancel_tick()
        self._session = replace(session)

        if session.is_paused:
            logger.info("Restored paused session")
            return

        elapsed = self._clock.now_ms() - session.start_timestamp
        self._session.remaining_ms = max(session.total_duration_ms - max(elapsed, 0), 0)

        if self._session.remaining_ms <= 0:
            logger.info(f"Restored {session.phase.value} phase already finished, completing it")
            await self._complete_phase(session.start_timestamp + session.total_duration_ms)
            return

        self._arm_tick()
        logger.info(
            f"Restored running {session.phase.value} phase: "
            f"{format_countdown(self._session.remaining_ms)} left"
        )
        await self._notify_change()

    def dispose(self) -> None:
        """Cancel the tick without touching state."""
        self._cancel_tick()

    def _new_session(self, phase: Phase, duration_ms: int) -> Session:
        return Session(
            phase=phase,
            start_timestamp=self._clock.now_ms(),
            total_duration_ms=duration_ms,
            remaining_ms=duration_ms,
            is_paused=False,
        )

    def _arm_tick(self) -> None:
        self._cancel_tick()
        self._tick_handle = self._clock.call_every(TICK_MS, self._on_tick)

    def _cancel_tick(self) -> None:
        if self._tick_handle:
            self._tick_handle.cancel()
            self._tick_handle = None

    async def _on_tick(self) -> None:
        # Late or coalesced ticks after pause/stop are ignored
        if self._session is None or self._session.is_paused:
            return

        self._session.remaining_ms = max(self._session.remaining_ms - TICK_MS, 0)

        if self._session.remaining_ms <= 0:
            await self._complete_phase(self._clock.now_ms())
        else:
            await self._notify_change()

    async def _complete_phase(self, ended_at_ms: int) -> None:
        """Handle phase completion and transition."""
        self._cancel_tick()
        completed = replace(self._session, remaining_ms=0)

        if completed.phase == Phase.FOCUS:
            self._session = self._new_session(Phase.BREAK, self.break_duration_ms)
            self._arm_tick()
            logger.info("Focus phase complete! Starting break")
        else:
            self._session = None
            logger.info("Break complete! Cycle finished")

        if self.on_phase_complete:
            try:
                result = self.on_phase_complete(completed, ended_at_ms, self.session)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Error in on_phase_complete callback: {e}")

        await self._notify_change()

    async def _notify_change(self) -> None:
        if not self.on_change:
            return
        try:
            result = self.on_change(self.session)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in on_change callback: {e}")
