"""Bounded session history and the forest of completed focus phases."""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from study_forest.focus.session import Phase, format_duration

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 20

# (kind, species) pairs a completed focus phase can grow into
PLANT_CATALOGUE: list[tuple[str, str]] = [
    ("tree", "Oak Tree"),
    ("tree", "Pine Tree"),
    ("tree", "Palm Tree"),
    ("flower", "Cherry Blossom"),
    ("flower", "Rose"),
    ("flower", "Sunflower"),
    ("bush", "Fern"),
    ("bush", "Leaf"),
]


def _local_time(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000)


@dataclass(frozen=True)
class HistoryEntry:
    """A completed phase, formatted for display when it was recorded."""
    id: str
    phase: Phase
    start_time_label: str
    end_time_label: str
    duration_label: str
    date_label: str

    @classmethod
    def from_phase(
        cls, phase: Phase, started_at_ms: int, ended_at_ms: int, duration_ms: int
    ) -> HistoryEntry:
        """Build an entry, rendering local time labels once."""
        started = _local_time(started_at_ms)
        ended = _local_time(ended_at_ms)
        return cls(
            id=uuid.uuid4().hex,
            phase=phase,
            start_time_label=started.strftime("%H:%M"),
            end_time_label=ended.strftime("%H:%M"),
            duration_label=format_duration(duration_ms),
            date_label=f"{ended:%A}, {ended:%B} {ended.day}, {ended.year}",
        )


class HistoryLedger:
    """Most-recent-first log of completed phases, capped at ``max_entries``.

    When full, the oldest entry is evicted on every insert.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, entries: Iterable[HistoryEntry] = ()):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: list[HistoryEntry] = list(entries)[:max_entries]

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, entry: HistoryEntry) -> None:
        self._entries.insert(0, entry)
        del self._entries[self.max_entries:]
        logger.debug(f"Recorded {entry.phase.value} session ({len(self._entries)} in history)")

    def clear(self) -> None:
        self._entries.clear()


@dataclass(frozen=True)
class ForestEntry:
    """A plant grown by one completed focus phase."""
    id: str
    kind: str
    species: str
    planted_at: str  # ISO-8601 UTC


class Forest:
    """Plants earned by completed focus phases."""

    def __init__(self, entries: Iterable[ForestEntry] = (), rng: random.Random | None = None):
        self._entries: list[ForestEntry] = list(entries)
        self._rng = rng or random.Random()

    @property
    def entries(self) -> list[ForestEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def plant(self, planted_at_ms: int) -> ForestEntry:
        kind, species = self._rng.choice(PLANT_CATALOGUE)
        entry = ForestEntry(
            id=uuid.uuid4().hex,
            kind=kind,
            species=species,
            planted_at=datetime.fromtimestamp(planted_at_ms / 1000, tz=timezone.utc).isoformat(),
        )
        self._entries.append(entry)
        logger.info(f"Planted a {species} ({len(self._entries)} plants in forest)")
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def counts_by_kind(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for entry in self._entries:
            counts[entry.kind] = counts.get(entry.kind, 0) + 1
        return counts
