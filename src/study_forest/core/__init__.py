"""Core components: configuration, clock and alert capability."""

from study_forest.core.clock import AsyncioClock, Clock, ManualClock, TimerHandle
from study_forest.core.config import Config, get_config

__all__ = [
    "AsyncioClock",
    "Clock",
    "ManualClock",
    "TimerHandle",
    "Config",
    "get_config",
]
