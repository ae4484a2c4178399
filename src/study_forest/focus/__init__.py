"""Focus cycle: session timer, reminders, history and forest."""

from study_forest.focus.session import Phase, Session, SessionTimer, format_countdown, format_duration
from study_forest.focus.reminders import ReminderScheduler, ReminderState
from study_forest.focus.history import Forest, ForestEntry, HistoryEntry, HistoryLedger
from study_forest.focus.playback import PlaybackCapability, PlaybackState, PlaybackTracker

__all__ = [
    "Phase",
    "Session",
    "SessionTimer",
    "format_countdown",
    "format_duration",
    "ReminderScheduler",
    "ReminderState",
    "Forest",
    "ForestEntry",
    "HistoryEntry",
    "HistoryLedger",
    "PlaybackCapability",
    "PlaybackState",
    "PlaybackTracker",
]
