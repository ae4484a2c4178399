"""Pydantic schemas for persisted and replicated documents."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from study_forest.focus.history import ForestEntry, HistoryEntry
from study_forest.focus.playback import PlaybackState
from study_forest.focus.reminders import ReminderState
from study_forest.focus.session import Phase, Session


class Document(BaseModel):
    """Base for stored documents: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class SessionDocument(Document):
    """The ``currentSession`` key."""

    phase: Literal["focus", "break"]
    start_timestamp: int = Field(alias="startTimestamp", description="Epoch ms when the phase began")
    total_duration_ms: int = Field(alias="totalDurationMs", gt=0)
    remaining_ms: int = Field(alias="remainingMs", ge=0)
    is_paused: bool = Field(default=False, alias="isPaused")

    @model_validator(mode="after")
    def _remaining_within_total(self) -> SessionDocument:
        if self.remaining_ms > self.total_duration_ms:
            raise ValueError("remainingMs exceeds totalDurationMs")
        return self

    @classmethod
    def from_session(cls, session: Session) -> SessionDocument:
        return cls(
            phase=session.phase.value,
            start_timestamp=session.start_timestamp,
            total_duration_ms=session.total_duration_ms,
            remaining_ms=session.remaining_ms,
            is_paused=session.is_paused,
        )

    def to_session(self) -> Session:
        return Session(
            phase=Phase(self.phase),
            start_timestamp=self.start_timestamp,
            total_duration_ms=self.total_duration_ms,
            remaining_ms=self.remaining_ms,
            is_paused=self.is_paused,
        )


class ReminderDocument(Document):
    """The ``reminderState`` key."""

    last_fired_at: int = Field(alias="lastFiredAt", ge=0)
    dismissed: bool = False

    @classmethod
    def from_state(cls, state: ReminderState) -> ReminderDocument:
        return cls(last_fired_at=state.last_fired_at, dismissed=state.dismissed)

    def to_state(self) -> ReminderState:
        return ReminderState(last_fired_at=self.last_fired_at, dismissed=self.dismissed)


class HistoryDocument(Document):
    """One element of the ``sessionHistory`` key."""

    id: str
    phase: Literal["focus", "break"]
    start_time_label: str = Field(alias="startTimeLabel")
    end_time_label: str = Field(alias="endTimeLabel")
    duration_label: str = Field(alias="durationLabel")
    date_label: str = Field(alias="dateLabel")

    @classmethod
    def from_entry(cls, entry: HistoryEntry) -> HistoryDocument:
        return cls(
            id=entry.id,
            phase=entry.phase.value,
            start_time_label=entry.start_time_label,
            end_time_label=entry.end_time_label,
            duration_label=entry.duration_label,
            date_label=entry.date_label,
        )

    def to_entry(self) -> HistoryEntry:
        return HistoryEntry(
            id=self.id,
            phase=Phase(self.phase),
            start_time_label=self.start_time_label,
            end_time_label=self.end_time_label,
            duration_label=self.duration_label,
            date_label=self.date_label,
        )


class ForestDocument(Document):
    """One element of the ``forest`` key."""

    id: str
    kind: Literal["tree", "flower", "bush"]
    species: str = ""
    planted_at: str = Field(alias="plantedAt")

    @classmethod
    def from_entry(cls, entry: ForestEntry) -> ForestDocument:
        return cls(id=entry.id, kind=entry.kind, species=entry.species, planted_at=entry.planted_at)

    def to_entry(self) -> ForestEntry:
        return ForestEntry(id=self.id, kind=self.kind, species=self.species, planted_at=self.planted_at)


class PlaybackDocument(Document):
    """The ``playbackState`` key."""

    position_seconds: float = Field(default=0.0, alias="positionSeconds", ge=0)
    volume: int = Field(default=50, ge=0, le=100)

    @classmethod
    def from_state(cls, state: PlaybackState) -> PlaybackDocument:
        return cls(position_seconds=state.position_seconds, volume=state.volume)

    def to_state(self) -> PlaybackState:
        return PlaybackState(position_seconds=self.position_seconds, volume=self.volume)


HistoryListAdapter = TypeAdapter(list[HistoryDocument])
ForestListAdapter = TypeAdapter(list[ForestDocument])
