"""Study Forest - focus/break study timer with eye-strain reminders."""

__version__ = "0.1.0"
