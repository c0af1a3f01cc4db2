"""Configuration models and helpers for the clear tracker."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import ConfigDict, StrictBool, StrictStr, ValidationError, model_validator
from pydantic.alias_generators import to_camel, to_snake

from .history import FilterSelector
from .models import TimerMode
from .schemas import CamelModel

logger = logging.getLogger(__name__)

TARGET_PROCESS_NAME = "destiny2.exe"

_FAST_UPDATE_RATE = 60.0
_SLOW_UPDATE_RATE = 2.0

_FILTER_FIELDS = ("filter_timespan", "filter_activity_type")


@dataclass(slots=True)
class TimerSettings:
    """Runtime configuration for the activity timer."""

    display_milliseconds: bool = True
    update_rate: float = _FAST_UPDATE_RATE
    gap_buffer: timedelta = timedelta(seconds=40)
    completion_grace: timedelta = timedelta(seconds=3)

    @classmethod
    def from_preferences(cls, preferences: "Preferences") -> "TimerSettings":
        return cls(
            display_milliseconds=preferences.display_milliseconds,
            update_rate=rate_for(preferences.display_milliseconds),
        )

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.update_rate


def rate_for(display_milliseconds: bool) -> float:
    return _FAST_UPDATE_RATE if display_milliseconds else _SLOW_UPDATE_RATE


class Preferences(CamelModel):
    """User preferences as stored in ``preferences.json``."""

    timer_mode: TimerMode = TimerMode.DEFAULT
    display_milliseconds: StrictBool = True
    use_real_time: StrictBool = False
    filter_timespan: StrictStr = "1"
    filter_activity_type: StrictStr = "all"
    display_clear_notifications: StrictBool = True
    display_daily_clears: StrictBool = True
    display_timer: StrictBool = True
    display_average_clear_time: StrictBool = False
    enable_overlay: StrictBool = False

    @model_validator(mode="after")
    def check_filter(self) -> "Preferences":
        FilterSelector.parse(self.filter_timespan, self.filter_activity_type)
        return self

    @property
    def selector(self) -> FilterSelector:
        return FilterSelector.parse(self.filter_timespan, self.filter_activity_type)

    @classmethod
    def from_data(cls, data: Mapping[str, Any]) -> "Preferences":
        """Build preferences from stored keys, dropping invalid values in favour of defaults."""
        values = dict(data)
        while True:
            try:
                return cls.model_validate(values)
            except ValidationError as exc:
                rejected = _rejected_keys(exc)
            invalid = [key for key in values if key in rejected]
            if not invalid:
                logger.warning("Preferences are invalid; using defaults.")
                return cls()
            for key in invalid:
                logger.warning("Ignoring invalid preference %s=%r", key, values.pop(key))

    def updated(self, **changes: Any) -> "Preferences":
        """Return a validated copy; raises ``ValidationError`` for bad values."""
        return type(self).model_validate({**self.model_dump(), **changes})


class PreferencesUpdate(CamelModel):
    """Partial preferences accepted by the dashboard, keyed like ``Preferences``."""

    model_config = ConfigDict(extra="forbid")

    timer_mode: Optional[TimerMode] = None
    display_milliseconds: Optional[StrictBool] = None
    use_real_time: Optional[StrictBool] = None
    filter_timespan: Optional[StrictStr] = None
    filter_activity_type: Optional[StrictStr] = None
    display_clear_notifications: Optional[StrictBool] = None
    display_daily_clears: Optional[StrictBool] = None
    display_timer: Optional[StrictBool] = None
    display_average_clear_time: Optional[StrictBool] = None
    enable_overlay: Optional[StrictBool] = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True)


def _rejected_keys(error: ValidationError) -> set[str]:
    rejected: set[str] = set()
    for detail in error.errors():
        # Errors raised by check_filter carry no field location.
        names = [to_snake(str(detail["loc"][0]))] if detail["loc"] else list(_FILTER_FIELDS)
        for name in names:
            rejected.update((name, to_camel(name)))
    return rejected


def load_preferences(path: Path) -> Preferences:
    """Read preferences, falling back to defaults when the file is missing or broken."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.info("No preferences at %s; using defaults.", path)
        return Preferences()
    except (OSError, ValueError):
        logger.warning("Could not read preferences from %s; using defaults.", path, exc_info=True)
        return Preferences()
    if not isinstance(raw, dict):
        logger.warning("Preferences file %s is not an object; using defaults.", path)
        return Preferences()
    return Preferences.from_data(raw)


def save_preferences(path: Path, preferences: Preferences) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(preferences.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
