"""Break and eye-strain reminders that run alongside an active session."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable

from study_forest.core.alerts import AlertCapability, play_alert_safely
from study_forest.core.clock import Clock, TimerHandle

logger = logging.getLogger(__name__)

TICK_MS = 1000

BREAK_INTERVAL_MS = 2 * 60 * 60 * 1000
EYE_INTERVAL_MS = 30 * 60 * 1000
EYE_COUNTDOWN_SECONDS = 30


@dataclass
class ReminderState:
    """Global eye-reminder record, persisted across sessions."""
    last_fired_at: int  # epoch ms
    dismissed: bool = False


class ReminderScheduler:
    """Two independent countdown alarms gated by session activity.

    The break reminder fires every ``break_interval_ms`` of running time over
    the whole cycle. The eye reminder fires every ``eye_interval_ms`` and shows
    a notification that dismisses itself after ``eye_countdown_seconds``.

    Both countdowns advance on a one-second tick, so suspending the tick
    freezes them without resetting.
    """

    def __init__(
        self,
        clock: Clock,
        alert: AlertCapability | None = None,
        break_interval_ms: int = BREAK_INTERVAL_MS,
        eye_interval_ms: int = EYE_INTERVAL_MS,
        eye_countdown_seconds: int = EYE_COUNTDOWN_SECONDS,
        state: ReminderState | None = None,
    ):
        self._clock = clock
        self._alert = alert
        self.break_interval_ms = break_interval_ms
        self.eye_interval_ms = eye_interval_ms
        self.eye_countdown_seconds = eye_countdown_seconds

        self._state = state
        self._active = False
        self._tick_handle: TimerHandle | None = None
        self._auto_dismiss_handle: TimerHandle | None = None

        # Display state
        self.break_visible = False
        self.eye_visible = False
        self.break_next_in_ms = break_interval_ms
        self.eye_next_in_ms = eye_interval_ms
        self.eye_countdown_left = 0

        # Callbacks
        self.on_state_change: Callable[[ReminderState], Awaitable[None] | None] | None = None
        self.on_break_reminder: Callable[[], None] | None = None
        self.on_eye_reminder: Callable[[], None] | None = None

    @property
    def state(self) -> ReminderState | None:
        return replace(self._state) if self._state else None

    @property
    def is_active(self) -> bool:
        """A run is in progress (running or suspended)."""
        return self._active

    @property
    def is_ticking(self) -> bool:
        return self._tick_handle is not None

    async def start(self) -> None:
        """Begin reminders for a new run with both countdowns at full period."""
        self._cancel_tick()
        self._active = True
        self.break_next_in_ms = self.break_interval_ms
        self.eye_next_in_ms = self.eye_interval_ms

        now = self._clock.now_ms()
        if self._state is None:
            self._state = ReminderState(last_fired_at=now)
        else:
            self._state.last_fired_at = now

        self._arm_tick()
        logger.info("Reminders started")
        await self._notify_state()

    def adopt_state(self, state: ReminderState | None) -> None:
        """Take over the persisted record loaded at startup."""
        self._state = replace(state) if state else None

    async def restore(self, run_elapsed_ms: int = 0, running: bool = True) -> None:
        """Re-enter a run recovered from storage.

        ``run_elapsed_ms`` is the running (unpaused) time of the run so far.
        Both countdowns started with the run and only advance while it runs,
        so their positions follow from it. A paused run comes back suspended.
        """
        self._cancel_tick()
        self._active = True
        run_elapsed_ms = max(run_elapsed_ms, 0)
        self.break_next_in_ms = self.break_interval_ms - run_elapsed_ms % self.break_interval_ms
        self.eye_next_in_ms = self.eye_interval_ms - run_elapsed_ms % self.eye_interval_ms

        if self._state is None:
            self._state = ReminderState(last_fired_at=self._clock.now_ms())
            await self._notify_state()

        if running:
            self._arm_tick()
        logger.info("Reminders restored")

    def suspend(self) -> None:
        """Freeze both countdowns."""
        if self._tick_handle is None:
            return
        self._cancel_tick()
        logger.debug("Reminders suspended")

    def resume(self) -> None:
        """Continue frozen countdowns."""
        if not self._active or self._tick_handle is not None:
            return
        self._arm_tick()
        logger.debug("Reminders resumed")

    def stop(self) -> None:
        """End the run, cancelling every timer and hiding notifications."""
        self._cancel_tick()
        self._cancel_auto_dismiss()
        self._active = False
        self.break_visible = False
        self.eye_visible = False
        self.eye_countdown_left = 0
        self.break_next_in_ms = self.break_interval_ms
        self.eye_next_in_ms = self.eye_interval_ms
        logger.info("Reminders stopped")

    def dismiss_break(self) -> None:
        self.break_visible = False

    async def dismiss_eye(self) -> None:
        """Hide the eye reminder. The next periodic fire still happens."""
        self.eye_visible = False
        self.eye_countdown_left = 0
        self._cancel_auto_dismiss()

        if self._state is None:
            return
        self._state.dismissed = True
        await self._notify_state()

    def _arm_tick(self) -> None:
        self._tick_handle = self._clock.call_every(TICK_MS, self._on_tick)

    def _cancel_tick(self) -> None:
        if self._tick_handle:
            self._tick_handle.cancel()
            self._tick_handle = None

    def _cancel_auto_dismiss(self) -> None:
        if self._auto_dismiss_handle:
            self._auto_dismiss_handle.cancel()
            self._auto_dismiss_handle = None

    async def _on_tick(self) -> None:
        if not self._active or self._tick_handle is None:
            return

        self.break_next_in_ms -= TICK_MS
        self.eye_next_in_ms -= TICK_MS

        if self.break_next_in_ms <= 0:
            self.break_next_in_ms = self.break_interval_ms
            self._fire_break()

        if self.eye_next_in_ms <= 0:
            self.eye_next_in_ms = self.eye_interval_ms
            await self._fire_eye()

    def _fire_break(self) -> None:
        self.break_visible = True
        logger.info("Break reminder fired")
        play_alert_safely(self._alert)

        if self.on_break_reminder:
            try:
                self.on_break_reminder()
            except Exception as e:
                logger.error(f"Error in on_break_reminder callback: {e}")

    async def _fire_eye(self) -> None:
        self.eye_visible = True
        self.eye_countdown_left = self.eye_countdown_seconds
        self._cancel_auto_dismiss()
        self._auto_dismiss_handle = self._clock.call_every(TICK_MS, self._on_auto_dismiss_tick)

        now = self._clock.now_ms()
        if self._state is None:
            self._state = ReminderState(last_fired_at=now)
        else:
            self._state.last_fired_at = now
            self._state.dismissed = False

        logger.info("Eye-strain reminder fired")
        play_alert_safely(self._alert)

        if self.on_eye_reminder:
            try:
                self.on_eye_reminder()
            except Exception as e:
                logger.error(f"Error in on_eye_reminder callback: {e}")

        await self._notify_state()

    def _on_auto_dismiss_tick(self) -> None:
        if not self.eye_visible:
            self._cancel_auto_dismiss()
            return

        self.eye_countdown_left = max(self.eye_countdown_left - 1, 0)
        if self.eye_countdown_left == 0:
            self.eye_visible = False
            self._cancel_auto_dismiss()
            logger.debug("Eye-strain reminder auto-dismissed")

    async def _notify_state(self) -> None:
        if not self.on_state_change or self._state is None:
            return
        try:
            result = self.on_state_change(self.state)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.error(f"Error in on_state_change callback: {e}")
