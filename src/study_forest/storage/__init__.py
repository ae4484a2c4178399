"""Storage layer for persisted timer state."""

from study_forest.storage.database import Database, init_database
from study_forest.storage.store import StateStore

__all__ = ["Database", "init_database", "StateStore"]
