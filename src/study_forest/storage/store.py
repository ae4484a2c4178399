"""Typed persistence for timer state, with optional replication."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import TYPE_CHECKING, Callable, TypeVar

from pydantic import ValidationError

from study_forest.focus.history import ForestEntry, HistoryEntry
from study_forest.focus.playback import PlaybackState
from study_forest.focus.reminders import ReminderState
from study_forest.focus.session import Session
from study_forest.storage.schemas import (
    ForestDocument,
    ForestListAdapter,
    HistoryDocument,
    HistoryListAdapter,
    PlaybackDocument,
    ReminderDocument,
    SessionDocument,
)

if TYPE_CHECKING:
    from study_forest.storage.database import Database
    from study_forest.sync.replication import ReplicationBridge

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Store keys
SESSION_KEY = "currentSession"
REMINDER_KEY = "reminderState"
HISTORY_KEY = "sessionHistory"
FOREST_KEY = "forest"
SPACE_ID_KEY = "spaceId"
PLAYBACK_KEY = "playbackState"

REPLICATED_KEYS = frozenset({HISTORY_KEY, FOREST_KEY, REMINDER_KEY})


class StateStore:
    """Reads and writes each state document under its own key.

    Malformed documents are logged and treated as missing. Saves of
    replicated keys are also pushed to the bridge, scoped by space id.
    """

    def __init__(
        self,
        db: Database,
        bridge: ReplicationBridge | None = None,
        space_id: str | None = None,
        pull_timeout_seconds: float = 5.0,
    ):
        self._db = db
        self._bridge = bridge
        self.space_id = space_id
        self._pull_timeout = pull_timeout_seconds

    async def _read(self, key: str, parse: Callable[[str], T]) -> T | None:
        raw = await self._db.load(key)
        if raw is None:
            return None
        try:
            return parse(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(f"Discarding corrupt '{key}' document: {e}")
            return None

    async def _write(self, key: str, value: str) -> None:
        await self._db.save(key, value)
        if self._bridge is not None and self.space_id and key in REPLICATED_KEYS:
            self._bridge.push(self.space_id, key, value)

    async def _seed_from_replica(self, key: str) -> None:
        """Copy a remote document into the local store if the key is absent locally."""
        if self._bridge is None or not self.space_id:
            return
        if await self._db.load(key) is not None:
            return

        try:
            remote = await asyncio.wait_for(
                self._bridge.pull_once(self.space_id, key), timeout=self._pull_timeout
            )
        except Exception as e:
            logger.warning(f"Replica pull for '{key}' failed: {e}")
            return

        if remote is not None:
            await self._db.save(key, remote)
            logger.info(f"Seeded '{key}' from space {self.space_id}")

    async def seed_from_replicas(self) -> None:
        """Fill replicated keys that have no local copy. Local data always wins."""
        for key in sorted(REPLICATED_KEYS):
            await self._seed_from_replica(key)

    # Space id

    async def load_or_create_space_id(self, override: str | None = None) -> str:
        """Return the install's space id, generating and persisting it once."""
        if override:
            self.space_id = override
            return override

        stored = await self._db.load(SPACE_ID_KEY)
        if stored:
            try:
                value = json.loads(stored)
            except ValueError:
                value = None
            if isinstance(value, str) and value:
                self.space_id = value
                return value
            logger.warning("Discarding corrupt space id, generating a new one")

        self.space_id = uuid.uuid4().hex
        await self._db.save(SPACE_ID_KEY, json.dumps(self.space_id))
        logger.info(f"Generated space id {self.space_id}")
        return self.space_id

    # Session

    async def load_session(self) -> Session | None:
        def parse(raw: str) -> Session | None:
            if json.loads(raw) is None:
                return None
            return SessionDocument.model_validate_json(raw).to_session()

        return await self._read(SESSION_KEY, parse)

    async def save_session(self, session: Session | None) -> None:
        value = "null" if session is None else SessionDocument.from_session(session).to_json()
        await self._write(SESSION_KEY, value)

    # Reminder state

    async def load_reminder_state(self) -> ReminderState | None:
        return await self._read(
            REMINDER_KEY, lambda raw: ReminderDocument.model_validate_json(raw).to_state()
        )

    async def save_reminder_state(self, state: ReminderState) -> None:
        await self._write(REMINDER_KEY, ReminderDocument.from_state(state).to_json())

    # History

    async def load_history(self) -> list[HistoryEntry]:
        entries = await self._read(
            HISTORY_KEY,
            lambda raw: [doc.to_entry() for doc in HistoryListAdapter.validate_json(raw)],
        )
        return entries or []

    async def save_history(self, entries: list[HistoryEntry]) -> None:
        docs = [HistoryDocument.from_entry(e) for e in entries]
        await self._write(HISTORY_KEY, HistoryListAdapter.dump_json(docs, by_alias=True).decode())

    # Forest

    async def load_forest(self) -> list[ForestEntry]:
        entries = await self._read(
            FOREST_KEY,
            lambda raw: [doc.to_entry() for doc in ForestListAdapter.validate_json(raw)],
        )
        return entries or []

    async def save_forest(self, entries: list[ForestEntry]) -> None:
        docs = [ForestDocument.from_entry(e) for e in entries]
        await self._write(FOREST_KEY, ForestListAdapter.dump_json(docs, by_alias=True).decode())

    # Playback

    async def load_playback(self) -> PlaybackState | None:
        return await self._read(
            PLAYBACK_KEY, lambda raw: PlaybackDocument.model_validate_json(raw).to_state()
        )

    async def save_playback(self, state: PlaybackState) -> None:
        await self._write(PLAYBACK_KEY, PlaybackDocument.from_state(state).to_json())

    async def close(self) -> None:
        """Flush replication and close the database."""
        if self._bridge is not None:
            try:
                await self._bridge.close()
            except Exception as e:
                logger.warning(f"Error closing replication bridge: {e}")
        await self._db.close()
