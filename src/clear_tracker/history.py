"""Windowed, categorized views over the completion history."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Iterable, Optional, Sequence

from .activities import (
    EXCLUDED_ACTIVITIES,
    GROUPED_DUNGEONS,
    GROUPED_RAIDS,
    determine_activity_type,
    resolve_alias,
)
from .models import CompletionRecord, HistoryStats

logger = logging.getLogger(__name__)

RESET_HOUR_UTC = 17
WEEKLY_RESET_WEEKDAY = 1  # Tuesday
FILTER_CACHE_TTL = timedelta(seconds=5)


class Timespan(str, Enum):
    ONE_DAY = "1"
    SEVEN_DAY = "7"
    THIRTY_DAY = "30"

    @property
    def days(self) -> int:
        return int(self.value)

    @property
    def label(self) -> str:
        return _TIMESPAN_LABELS[self]


_TIMESPAN_LABELS = {
    Timespan.ONE_DAY: " today",
    Timespan.SEVEN_DAY: " this week",
    Timespan.THIRTY_DAY: " this month",
}


class CategoryKind(str, Enum):
    ALL = "all"
    RAIDS = "raids"
    DUNGEONS = "dungeons"
    STRIKES = "strikes"
    LOST_SECTORS = "lost-sectors"
    STORY = "story"
    GROUPED_RAID = "grouped-raid"
    GROUPED_DUNGEON = "grouped-dungeon"
    SPECIFIC_ACTIVITY = "activity"


_NAMED_TYPES = {
    CategoryKind.RAIDS: "Raid",
    CategoryKind.DUNGEONS: "Dungeon",
    CategoryKind.STRIKES: "Strike",
    CategoryKind.LOST_SECTORS: "Lost Sector",
    CategoryKind.STORY: "Story",
}


@dataclass(frozen=True, slots=True)
class Category:
    kind: CategoryKind = CategoryKind.ALL
    group_key: Optional[str] = None
    activity_hash: Optional[int] = None

    @classmethod
    def grouped_raid(cls, key: str) -> "Category":
        return cls(CategoryKind.GROUPED_RAID, group_key=resolve_alias(key))

    @classmethod
    def grouped_dungeon(cls, key: str) -> "Category":
        return cls(CategoryKind.GROUPED_DUNGEON, group_key=resolve_alias(key))

    @classmethod
    def specific(cls, activity_hash: int) -> "Category":
        return cls(CategoryKind.SPECIFIC_ACTIVITY, activity_hash=activity_hash)

    @classmethod
    def parse(cls, value: str) -> "Category":
        """Parse a preference code such as ``raids`` or ``grouped-raid-last-wish``."""
        code = value.strip().lower()
        for kind in (CategoryKind.ALL, *_NAMED_TYPES):
            if code == kind.value:
                return cls(kind)
        for prefix, factory in (
            ("grouped-raid-", cls.grouped_raid),
            ("grouped-dungeon-", cls.grouped_dungeon),
        ):
            if code.startswith(prefix) and len(code) > len(prefix):
                return factory(code[len(prefix):])
        for prefix in ("raid-", "dungeon-", "activity-"):
            if code.startswith(prefix):
                try:
                    return cls.specific(int(code[len(prefix):]))
                except ValueError:
                    break
        raise ValueError(f"Unknown activity filter: {value!r}")

    @property
    def code(self) -> str:
        if self.kind in (CategoryKind.GROUPED_RAID, CategoryKind.GROUPED_DUNGEON):
            return f"{self.kind.value}-{self.group_key}"
        if self.kind is CategoryKind.SPECIFIC_ACTIVITY:
            return f"{self.kind.value}-{self.activity_hash}"
        return self.kind.value

    def matches(self, record: CompletionRecord) -> bool:
        if self.kind is CategoryKind.ALL:
            return True
        if self.kind is CategoryKind.GROUPED_RAID:
            group = GROUPED_RAIDS.get(self.group_key or "")
            return group is not None and record.activity_hash in group.hashes
        if self.kind is CategoryKind.GROUPED_DUNGEON:
            group = GROUPED_DUNGEONS.get(self.group_key or "")
            return group is not None and record.activity_hash in group.hashes
        if self.kind is CategoryKind.SPECIFIC_ACTIVITY:
            return record.activity_hash == self.activity_hash
        return determine_activity_type(record.category_hints) == _NAMED_TYPES[self.kind]


@dataclass(frozen=True, slots=True)
class FilterSelector:
    timespan: Timespan = Timespan.ONE_DAY
    category: Category = Category()

    @classmethod
    def parse(cls, timespan: str, activity_type: str) -> "FilterSelector":
        try:
            parsed_timespan = Timespan(str(timespan).strip())
        except ValueError as exc:
            raise ValueError(f"Unknown timespan: {timespan!r}") from exc
        return cls(timespan=parsed_timespan, category=Category.parse(activity_type))


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def daily_reset(now: datetime) -> datetime:
    """Most recent daily reset at or before ``now``."""
    now = _utc(now)
    boundary = now.replace(hour=RESET_HOUR_UTC, minute=0, second=0, microsecond=0)
    if boundary > now:
        boundary -= timedelta(days=1)
    return boundary


def weekly_reset(now: datetime) -> datetime:
    """Most recent Tuesday reset at or before ``now``."""
    now = _utc(now)
    days_since_reset_day = (now.weekday() - WEEKLY_RESET_WEEKDAY) % 7
    boundary = (now - timedelta(days=days_since_reset_day)).replace(
        hour=RESET_HOUR_UTC, minute=0, second=0, microsecond=0
    )
    if boundary > now:
        boundary -= timedelta(days=7)
    return boundary


def window_start(timespan: Timespan, now: datetime, *, use_real_time: bool) -> datetime:
    """Earliest ``period`` still inside the window."""
    if use_real_time:
        return _utc(now) - timedelta(days=timespan.days)
    if timespan is Timespan.ONE_DAY:
        return daily_reset(now)
    if timespan is Timespan.SEVEN_DAY:
        return weekly_reset(now)
    # The current week plus the three before it.
    return weekly_reset(now) - timedelta(weeks=3)


def count_completions(records: Iterable[CompletionRecord]) -> int:
    return sum(1 for record in records if record.completed)


def average_duration(records: Iterable[CompletionRecord]) -> float:
    durations = [record.duration_seconds for record in records if record.completed]
    if not durations:
        return 0
    return sum(durations) / len(durations)


_CacheKey = tuple[Timespan, Category, bool, int, Optional[str], Optional[str]]


class HistoryFilter:
    """Filter completion history by time window and category, with a short-lived cache."""

    def __init__(
        self,
        *,
        now: Optional[Callable[[], datetime]] = None,
        monotonic: Callable[[], float] = time.monotonic,
        cache_ttl: timedelta = FILTER_CACHE_TTL,
    ) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._monotonic = monotonic
        self._cache_ttl = cache_ttl.total_seconds()
        self._cache_key: Optional[_CacheKey] = None
        self._cache_time = 0.0
        self._cached: list[CompletionRecord] = []

    def clear_cache(self) -> None:
        self._cache_key = None
        self._cache_time = 0.0
        self._cached = []

    def filter(
        self,
        history: Sequence[CompletionRecord],
        selector: FilterSelector,
        use_real_time: bool,
    ) -> list[CompletionRecord]:
        if not history:
            return []

        cutoff = window_start(selector.timespan, self._now(), use_real_time=use_real_time)
        key: _CacheKey = (
            selector.timespan,
            selector.category,
            use_real_time,
            len(history),
            history[0].instance_id,
            history[-1].instance_id,
        )
        if self._cache_hit(key, cutoff):
            return list(self._cached)

        filtered = [
            record
            for record in history
            if record.activity_hash not in EXCLUDED_ACTIVITIES
            and _utc(record.period) >= cutoff
            and selector.category.matches(record)
        ]
        self._cache_key = key
        self._cache_time = self._monotonic()
        self._cached = filtered
        logger.debug(
            "Filtered %d of %d records for %s/%s (real time=%s)",
            len(filtered),
            len(history),
            selector.timespan.value,
            selector.category.code,
            use_real_time,
        )
        return list(filtered)

    def stats(
        self,
        history: Sequence[CompletionRecord],
        selector: FilterSelector,
        use_real_time: bool,
    ) -> HistoryStats:
        records = self.filter(history, selector, use_real_time)
        return HistoryStats(
            completions=count_completions(records),
            average_seconds=average_duration(records),
            timespan_label=selector.timespan.label,
            latest=records[0] if records else None,
            records=records,
        )

    def _cache_hit(self, key: _CacheKey, cutoff: datetime) -> bool:
        if key != self._cache_key:
            return False
        if self._monotonic() - self._cache_time >= self._cache_ttl:
            return False
        # The cutoff only moves forward, so excluded records stay excluded;
        # a cached record that fell out of the window forces a recompute.
        return all(_utc(record.period) >= cutoff for record in self._cached)
