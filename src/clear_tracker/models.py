"""Domain models for polled player data and timer state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class TimerMode(str, Enum):
    DEFAULT = "default"
    PERSISTENT = "persistent"


@dataclass(frozen=True, slots=True)
class ActivitySnapshot:
    """The activity the player is inside according to the last poll."""

    start_date: Optional[datetime]
    activity_hash: int
    category_hints: tuple[int, ...] = ()
    name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CompletionRecord:
    """A finished (or abandoned) play-through reported in the activity history."""

    period: datetime
    instance_id: str
    completed: bool
    duration_seconds: float
    activity_hash: int
    category_hints: tuple[int, ...] = ()

    @property
    def presumed_end(self) -> datetime:
        return self.period + timedelta(seconds=self.duration_seconds)

    @property
    def completion_key(self) -> str:
        return f"{self.activity_hash}_{self.period.isoformat()}"


@dataclass(frozen=True, slots=True)
class ProfileInfo:
    display_name: str
    display_tag: int

    @property
    def label(self) -> str:
        return f"{self.display_name}#{self.display_tag}"


@dataclass(frozen=True, slots=True)
class PlayerSnapshot:
    current_activity: Optional[ActivitySnapshot]
    activity_history: tuple[CompletionRecord, ...]
    profile: ProfileInfo


@dataclass(frozen=True, slots=True)
class PlayerDataStatus:
    """One delivery from the player-data poller."""

    last_update: Optional[PlayerSnapshot] = None
    error: Optional[str] = None
    history_loading: bool = False


@dataclass(frozen=True, slots=True)
class TimerState:
    elapsed_label: str = ""
    elapsed_millis_label: str = ""
    is_running: bool = False
    mode: TimerMode = TimerMode.DEFAULT

    def as_dict(self) -> dict[str, object]:
        return {
            "elapsed_label": self.elapsed_label,
            "elapsed_millis_label": self.elapsed_millis_label,
            "is_running": self.is_running,
            "mode": self.mode.value,
        }


@dataclass(frozen=True, slots=True)
class Notification:
    title: str
    subtext: str


@dataclass(slots=True)
class HistoryStats:
    """Count and average clear time over a filtered slice of history."""

    completions: int
    average_seconds: float
    timespan_label: str
    latest: Optional[CompletionRecord] = None
    records: list[CompletionRecord] = field(default_factory=list)
