"""Controller that coordinates the session timer, reminders, history and storage."""

from __future__ import annotations

import logging
import random
from typing import Any

from study_forest.core.alerts import AlertCapability, play_alert_safely
from study_forest.core.clock import AsyncioClock, Clock
from study_forest.core.config import Config
from study_forest.focus.history import Forest, HistoryEntry, HistoryLedger
from study_forest.focus.playback import PlaybackCapability, PlaybackTracker
from study_forest.focus.reminders import ReminderScheduler
from study_forest.focus.session import (
    Phase,
    Session,
    SessionTimer,
    format_countdown,
    progress_percent,
)
from study_forest.storage.database import init_database
from study_forest.storage.store import StateStore
from study_forest.sync.replication import HttpReplicationBridge

logger = logging.getLogger(__name__)


class SessionController:
    """Single owner of every timer handle and piece of state for one process.

    Usage:
        controller = SessionController(store, clock, alert, config)
        await controller.load()  # exactly once, before anything else

        await controller.start_focus()
        await controller.pause()
        await controller.resume()
        await controller.stop()

        await controller.dispose()
    """

    def __init__(
        self,
        store: StateStore,
        clock: Clock,
        alert: AlertCapability | None = None,
        config: Config | None = None,
        player: PlaybackCapability | None = None,
        rng: random.Random | None = None,
    ):
        self.config = config or Config()
        self._store = store
        self._clock = clock
        self._alert = alert
        self._rng = rng

        timer_cfg = self.config.timer
        reminder_cfg = self.config.reminders

        self._timer = SessionTimer(
            clock,
            focus_duration_ms=timer_cfg.focus_duration_ms,
            break_duration_ms=timer_cfg.break_duration_ms,
        )
        self._timer.on_change = self._on_session_change
        self._timer.on_phase_complete = self._on_phase_complete

        self._reminders = ReminderScheduler(
            clock,
            alert,
            break_interval_ms=reminder_cfg.break_interval_ms,
            eye_interval_ms=reminder_cfg.eye_interval_ms,
            eye_countdown_seconds=reminder_cfg.eye_countdown_seconds,
        )
        self._reminders.on_state_change = self._store.save_reminder_state

        self.history = HistoryLedger(self.config.history.max_entries)
        self.forest = Forest(rng=rng)

        self._playback = (
            PlaybackTracker(player, on_save=self._store.save_playback) if player else None
        )

        self._loaded = False
        self._disposed = False

    @property
    def session(self) -> Session | None:
        return self._timer.session

    @property
    def reminders(self) -> ReminderScheduler:
        return self._reminders

    @property
    def playback(self) -> PlaybackTracker | None:
        return self._playback

    @property
    def space_id(self) -> str | None:
        return self._store.space_id

    async def load(self) -> None:
        """Read persisted state and resume any session in progress."""
        if self._loaded:
            raise RuntimeError("Controller state already loaded")
        self._loaded = True

        await self._store.load_or_create_space_id(self.config.sync.space_id)
        await self._store.seed_from_replicas()

        self.history = HistoryLedger(
            self.config.history.max_entries, await self._store.load_history()
        )
        self.forest = Forest(await self._store.load_forest(), rng=self._rng)
        self._reminders.adopt_state(await self._store.load_reminder_state())

        if self._playback is not None:
            saved = await self._store.load_playback()
            if saved is not None:
                self._playback.state = saved

        session = await self._store.load_session()
        if session is not None:
            await self._timer.restore(session)
            # The restored phase may have completed and ended the cycle
            if self._timer.is_active:
                await self._reminders.restore(
                    self._run_elapsed_ms(self._timer.session), running=self._timer.is_running
                )

        logger.info(
            f"State loaded: {len(self.history)} history entries, "
            f"{len(self.forest)} plants, session {'active' if self._timer.is_active else 'idle'}"
        )

    def _run_elapsed_ms(self, session: Session) -> int:
        """Running time of the whole cycle. A break only follows a finished focus phase."""
        if session.phase == Phase.BREAK:
            return self._timer.focus_duration_ms + session.elapsed_ms
        return session.elapsed_ms

    def _require_loaded(self) -> None:
        if not self._loaded:
            raise RuntimeError("Controller state not loaded")
        if self._disposed:
            raise RuntimeError("Controller disposed")

    async def start_focus(self) -> None:
        """Start a new focus/break cycle, replacing any active one."""
        self._require_loaded()
        if self._reminders.is_active:
            self._reminders.stop()
        await self._timer.start_focus()
        await self._reminders.start()

    async def pause(self) -> None:
        self._require_loaded()
        if not self._timer.is_running:
            return
        self._reminders.suspend()
        await self._timer.pause()

    async def resume(self) -> None:
        self._require_loaded()
        if not self._timer.is_paused:
            return
        await self._timer.resume()
        self._reminders.resume()

    async def stop(self) -> None:
        """Abandon the cycle. Nothing is recorded for the unfinished phase."""
        self._require_loaded()
        self._reminders.stop()
        await self._timer.stop()

    def dismiss_break_reminder(self) -> None:
        self._reminders.dismiss_break()

    async def dismiss_eye_reminder(self) -> None:
        await self._reminders.dismiss_eye()

    async def clear_history(self) -> None:
        self._require_loaded()
        self.history.clear()
        await self._store.save_history(self.history.entries)
        logger.info("History cleared")

    async def clear_forest(self) -> None:
        self._require_loaded()
        self.forest.clear()
        await self._store.save_forest(self.forest.entries)
        logger.info("Forest cleared")

    async def play_media(self) -> None:
        if self._playback is not None:
            await self._playback.play()

    async def pause_media(self) -> None:
        if self._playback is not None:
            await self._playback.pause()

    async def set_media_volume(self, percent: int) -> None:
        if self._playback is not None:
            await self._playback.set_volume(percent)

    async def _on_session_change(self, session: Session | None) -> None:
        await self._store.save_session(session)

    async def _on_phase_complete(
        self, completed: Session, ended_at_ms: int, next_session: Session | None
    ) -> None:
        entry = HistoryEntry.from_phase(
            completed.phase,
            started_at_ms=completed.start_timestamp,
            ended_at_ms=ended_at_ms,
            duration_ms=completed.total_duration_ms,
        )
        self.history.record(entry)
        await self._store.save_history(self.history.entries)

        if completed.phase == Phase.FOCUS:
            self.forest.plant(ended_at_ms)
            await self._store.save_forest(self.forest.entries)

        play_alert_safely(self._alert)

        if next_session is None:
            self._reminders.stop()

    def snapshot(self) -> dict[str, Any]:
        """Display-ready view of the current state."""
        session = self._timer.session
        reminder_state = self._reminders.state
        return {
            "state": session.phase.value if session else "idle",
            "paused": bool(session and session.is_paused),
            "remaining_ms": session.remaining_ms if session else 0,
            "remaining": format_countdown(session.remaining_ms if session else 0),
            "progress_percent": round(progress_percent(session), 1),
            "break_reminder_visible": self._reminders.break_visible,
            "eye_reminder_visible": self._reminders.eye_visible,
            "eye_countdown_seconds": self._reminders.eye_countdown_left,
            "next_eye_reminder": format_countdown(self._reminders.eye_next_in_ms)
            if self._reminders.is_active
            else None,
            "eye_reminder_dismissed": reminder_state.dismissed if reminder_state else False,
            "history_count": len(self.history),
            "forest_count": len(self.forest),
            "space_id": self.space_id,
        }

    async def dispose(self) -> None:
        """Cancel every timer, remember the playback position, and release storage."""
        if self._disposed:
            return
        self._disposed = True

        self._timer.dispose()
        self._reminders.stop()

        if self._playback is not None:
            await self._playback.unload()

        await self._store.close()
        logger.info("Controller disposed")


async def create_controller(
    config: Config,
    clock: Clock | None = None,
    alert: AlertCapability | None = None,
    player: PlaybackCapability | None = None,
) -> SessionController:
    """Open storage (and replication, if enabled) and build a controller.

    The returned controller has not been loaded yet.
    """
    db = await init_database(config.db_path)

    bridge = None
    if config.sync.enabled:
        bridge = HttpReplicationBridge(config.sync.api_url)
        logger.info(f"Replication enabled via {config.sync.api_url}")

    store = StateStore(db, bridge=bridge, pull_timeout_seconds=config.sync.pull_timeout_seconds)
    return SessionController(store, clock or AsyncioClock(), alert, config, player)
