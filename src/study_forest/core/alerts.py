"""Audible alert capability."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from rich.console import Console

logger = logging.getLogger(__name__)


class AlertCapability(ABC):
    """Fire-and-forget "play alert" primitive."""

    @abstractmethod
    def play_alert(self) -> None:
        """Play an alert sound. Must return immediately."""


class BellAlert(AlertCapability):
    """Rings the terminal bell."""

    def __init__(self, console: Console | None = None):
        self._console = console or Console(stderr=True)

    def play_alert(self) -> None:
        self._console.bell()


class SilentAlert(AlertCapability):
    """Alert that only logs; used when no terminal is attached."""

    def play_alert(self) -> None:
        logger.debug("Alert suppressed (silent mode)")


def play_alert_safely(alert: AlertCapability | None) -> None:
    """Play an alert, logging and discarding any failure."""
    if alert is None:
        return
    try:
        alert.play_alert()
    except Exception as e:
        logger.warning(f"Alert failed: {e}")
