from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from clear_tracker.activities import RAID_ACTIVITY_MODE
from clear_tracker.models import ActivitySnapshot, CompletionRecord

BASE_TIME = datetime(2024, 1, 3, 12, 0, 0, tzinfo=timezone.utc)  # a Wednesday


@dataclass
class ManualTask:
    callback: Callable[[], None]
    due: float
    interval: float
    repeat: bool
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Deterministic scheduler whose clock only moves when told to."""

    current: datetime = BASE_TIME
    elapsed: float = 0.0
    tasks: list[ManualTask] = field(default_factory=list)

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.elapsed

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(callback, self.elapsed + delay, delay, repeat=False)
        self.tasks.append(task)
        return task

    def call_every(self, interval: float, callback: Callable[[], None]) -> ManualTask:
        task = ManualTask(callback, self.elapsed + interval, interval, repeat=True)
        self.tasks.append(task)
        return task

    @property
    def active(self) -> list[ManualTask]:
        return [task for task in self.tasks if not task.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.elapsed + seconds
        while True:
            pending = [task for task in self.active if task.due <= target]
            if not pending:
                break
            task = min(pending, key=lambda item: item.due)
            self._move_to(task.due)
            if task.repeat:
                task.due += task.interval
            else:
                task.cancelled = True
            task.callback()
        self._move_to(target)

    def _move_to(self, elapsed: float) -> None:
        self.current += timedelta(seconds=elapsed - self.elapsed)
        self.elapsed = elapsed


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


def make_activity(
    activity_hash: int = 1441982566,
    start: Optional[datetime] = None,
    modes: tuple[int, ...] = (RAID_ACTIVITY_MODE,),
) -> ActivitySnapshot:
    return ActivitySnapshot(
        start_date=start if start is not None else BASE_TIME - timedelta(minutes=5),
        activity_hash=activity_hash,
        category_hints=modes,
    )


def make_record(
    instance_id: str,
    period: datetime,
    *,
    activity_hash: int = 1441982566,
    duration: float = 1800,
    completed: bool = True,
    modes: tuple[int, ...] = (RAID_ACTIVITY_MODE,),
) -> CompletionRecord:
    return CompletionRecord(
        period=period,
        instance_id=instance_id,
        completed=completed,
        duration_seconds=duration,
        activity_hash=activity_hash,
        category_hints=modes,
    )
