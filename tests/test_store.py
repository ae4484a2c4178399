"""Tests for the SQLite key/value store and typed state documents."""

import json

import pytest

from study_forest.focus.history import ForestEntry, HistoryEntry
from study_forest.focus.playback import PlaybackState
from study_forest.focus.reminders import ReminderState
from study_forest.focus.session import Phase, Session
from study_forest.storage.database import Database
from study_forest.storage.store import (
    FOREST_KEY,
    HISTORY_KEY,
    REMINDER_KEY,
    SESSION_KEY,
    SPACE_ID_KEY,
    StateStore,
)
from study_forest.sync.replication import InMemoryReplicationBridge, ReplicationBridge

from conftest import T0


def history_entry(entry_id="h1") -> HistoryEntry:
    return HistoryEntry(
        id=entry_id,
        phase=Phase.BREAK,
        start_time_label="11:00",
        end_time_label="11:30",
        duration_label="30m",
        date_label="Sunday, October 18, 2026",
    )


class TestDatabase:
    async def test_missing_key_returns_none(self, db):
        assert await db.load("nothing") is None

    async def test_save_overwrites(self, db):
        await db.save("k", "1")
        await db.save("k", "2")
        assert await db.load("k") == "2"

    async def test_file_database_survives_reconnect(self, tmp_path):
        path = tmp_path / "nested" / "study.db"
        first = Database(path)
        await first.connect()
        await first.save("k", '"v"')
        await first.close()

        second = Database(path)
        await second.connect()
        assert await second.load("k") == '"v"'
        await second.close()

    async def test_requires_connection(self):
        with pytest.raises(RuntimeError):
            await Database(":memory:").load("k")

    async def test_backup_copies_file(self, tmp_path):
        database = Database(tmp_path / "study.db")
        await database.connect()
        await database.save("k", "1")

        backup_path = database.backup(tmp_path / "backups")
        await database.close()

        assert backup_path.exists()
        assert backup_path.parent == tmp_path / "backups"

    def test_memory_database_cannot_back_up(self):
        with pytest.raises(RuntimeError):
            Database(":memory:").backup()


class TestStateStore:
    async def test_session_document_uses_camel_case(self, db):
        store = StateStore(db)
        await store.save_session(Session(Phase.FOCUS, T0, 7_200_000, 7_199_000))

        raw = json.loads(await db.load(SESSION_KEY))
        assert raw == {
            "phase": "focus",
            "startTimestamp": T0,
            "totalDurationMs": 7_200_000,
            "remainingMs": 7_199_000,
            "isPaused": False,
        }

        loaded = await store.load_session()
        assert loaded == Session(Phase.FOCUS, T0, 7_200_000, 7_199_000)

    async def test_idle_session_is_stored_as_null(self, db):
        store = StateStore(db)
        await store.save_session(None)

        assert await db.load(SESSION_KEY) == "null"
        assert await store.load_session() is None

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            '{"phase": "nap", "startTimestamp": 1, "totalDurationMs": 10, "remainingMs": 5}',
            '{"phase": "focus", "startTimestamp": 1, "totalDurationMs": 10, "remainingMs": 50}',
            '{"phase": "focus"}',
        ],
    )
    async def test_corrupt_session_is_treated_as_absent(self, db, raw):
        await db.save(SESSION_KEY, raw)
        assert await StateStore(db).load_session() is None

    async def test_corrupt_lists_load_empty(self, db):
        await db.save(HISTORY_KEY, '{"oops": true}')
        await db.save(FOREST_KEY, '[{"id": "x", "kind": "cactus", "plantedAt": "now"}]')
        store = StateStore(db)

        assert await store.load_history() == []
        assert await store.load_forest() == []

    async def test_history_and_forest_round_trip(self, db):
        store = StateStore(db)
        plant = ForestEntry(id="f1", kind="flower", species="Rose", planted_at="2026-10-18T09:00:00+00:00")

        await store.save_history([history_entry()])
        await store.save_forest([plant])

        assert await store.load_history() == [history_entry()]
        assert await store.load_forest() == [plant]
        assert json.loads(await db.load(HISTORY_KEY))[0]["durationLabel"] == "30m"

    async def test_forest_without_species_still_loads(self, db):
        await db.save(FOREST_KEY, '[{"id": "x", "kind": "tree", "plantedAt": "2026-10-18T09:00:00+00:00"}]')
        forest = await StateStore(db).load_forest()
        assert forest[0].kind == "tree"
        assert forest[0].species == ""

    async def test_reminder_and_playback_state(self, db):
        store = StateStore(db)
        await store.save_reminder_state(ReminderState(last_fired_at=T0, dismissed=True))
        await store.save_playback(PlaybackState(position_seconds=42.5, volume=80))

        assert await store.load_reminder_state() == ReminderState(last_fired_at=T0, dismissed=True)
        assert await store.load_playback() == PlaybackState(position_seconds=42.5, volume=80)
        assert json.loads(await db.load(REMINDER_KEY)) == {"lastFiredAt": T0, "dismissed": True}

    async def test_space_id_is_generated_once(self, db):
        first = await StateStore(db).load_or_create_space_id()
        second = await StateStore(db).load_or_create_space_id()

        assert first == second
        assert json.loads(await db.load(SPACE_ID_KEY)) == first

    async def test_space_id_override_is_not_persisted(self, db):
        store = StateStore(db)
        assert await store.load_or_create_space_id("shared") == "shared"
        assert await db.load(SPACE_ID_KEY) is None


class TestReplication:
    async def test_replicated_keys_are_pushed(self, db):
        bridge = InMemoryReplicationBridge()
        store = StateStore(db, bridge=bridge, space_id="space")

        await store.save_history([history_entry()])
        await store.save_reminder_state(ReminderState(last_fired_at=T0))
        await store.save_session(None)

        assert set(bridge.documents) == {"space/sessionHistory", "space/reminderState"}

    async def test_nothing_is_pushed_without_space_id(self, db):
        bridge = InMemoryReplicationBridge()
        await StateStore(db, bridge=bridge).save_history([])
        assert bridge.documents == {}

    async def test_seed_fills_only_missing_keys(self, db):
        bridge = InMemoryReplicationBridge()
        bridge.push("space", HISTORY_KEY, '[]')
        bridge.push("space", FOREST_KEY, '[{"id": "r", "kind": "bush", "species": "Fern", "plantedAt": "x"}]')

        await db.save(HISTORY_KEY, "[local]")
        store = StateStore(db, bridge=bridge, space_id="space")
        await store.seed_from_replicas()

        assert await db.load(HISTORY_KEY) == "[local]"
        assert (await store.load_forest())[0].id == "r"
        assert await db.load(REMINDER_KEY) is None

    async def test_failing_pull_is_ignored(self, db):
        class BrokenBridge(ReplicationBridge):
            def push(self, namespace, key, value):
                pass

            async def pull_once(self, namespace, key):
                raise ConnectionError("offline")

        store = StateStore(db, bridge=BrokenBridge(), space_id="space")
        await store.seed_from_replicas()

        assert await store.load_history() == []
