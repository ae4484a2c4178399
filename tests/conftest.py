"""Shared fixtures for Study Forest tests."""

import random
from datetime import datetime

import pytest

from study_forest.core.alerts import AlertCapability
from study_forest.core.clock import ManualClock
from study_forest.core.config import Config
from study_forest.core.controller import SessionController
from study_forest.storage.database import Database
from study_forest.storage.store import StateStore

# Sunday, October 18, 2026 09:00 local time
T0 = int(datetime(2026, 10, 18, 9, 0).timestamp() * 1000)


class RecordingAlert(AlertCapability):
    """Counts alerts instead of making noise."""

    def __init__(self):
        self.count = 0

    def play_alert(self) -> None:
        self.count += 1


class FailingAlert(AlertCapability):
    def play_alert(self) -> None:
        raise OSError("no audio device")


@pytest.fixture
def clock():
    return ManualClock(start_ms=T0)


@pytest.fixture
def alert():
    return RecordingAlert()


@pytest.fixture
async def db():
    """Connected in-memory database."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def make_controller(clock, alert):
    """Build controllers sharing the test clock."""

    def factory(database, config=None, bridge=None, player=None, alert_capability=None):
        store = StateStore(database, bridge=bridge)
        return SessionController(
            store,
            clock,
            alert_capability or alert,
            config or Config(),
            player,
            rng=random.Random(7),
        )

    return factory
