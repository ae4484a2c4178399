"""Background music/video playback with remembered position."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class PlaybackCapability(ABC):
    """An embedded player widget."""

    @abstractmethod
    def play(self) -> None: ...

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def seek_to(self, seconds: float) -> None: ...

    @abstractmethod
    def set_volume(self, percent: int) -> None: ...

    @abstractmethod
    def get_current_position_seconds(self) -> float: ...


@dataclass
class PlaybackState:
    """Last known player position and volume."""
    position_seconds: float = 0.0
    volume: int = 50


class PlaybackTracker:
    """Wraps a player so its position survives restarts.

    The position is saved on pause and unload, and restored before the next
    play. Player errors are logged and ignored.
    """

    def __init__(
        self,
        player: PlaybackCapability,
        state: PlaybackState | None = None,
        on_save: Callable[[PlaybackState], Awaitable[None]] | None = None,
    ):
        self._player = player
        self.state = state or PlaybackState()
        self._on_save = on_save

    async def play(self) -> None:
        """Seek to the remembered position, apply volume, and start playing."""
        try:
            self._player.seek_to(self.state.position_seconds)
            self._player.set_volume(self.state.volume)
            self._player.play()
        except Exception as e:
            logger.warning(f"Playback start failed: {e}")

    async def pause(self) -> None:
        try:
            self._player.pause()
        except Exception as e:
            logger.warning(f"Playback pause failed: {e}")
        await self._capture_position()

    async def unload(self) -> None:
        """Remember the current position before the player goes away."""
        await self._capture_position()

    async def set_volume(self, percent: int) -> None:
        self.state.volume = max(0, min(100, int(percent)))
        try:
            self._player.set_volume(self.state.volume)
        except Exception as e:
            logger.warning(f"Setting volume failed: {e}")
        await self._save()

    async def _capture_position(self) -> None:
        try:
            position = float(self._player.get_current_position_seconds())
        except Exception as e:
            logger.warning(f"Could not read playback position: {e}")
            return

        self.state.position_seconds = max(0.0, position)
        await self._save()

    async def _save(self) -> None:
        if self._on_save is None:
            return
        try:
            await self._on_save(self.state)
        except Exception as e:
            logger.error(f"Failed to save playback state: {e}")
