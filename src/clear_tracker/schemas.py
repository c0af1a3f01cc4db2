"""Wire payloads for player data, as delivered by the poller in camelCase JSON."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    ActivitySnapshot,
    CompletionRecord,
    PlayerDataStatus,
    PlayerSnapshot,
    ProfileInfo,
)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class ActivityInfoPayload(CamelModel):
    name: str = ""
    activity_modes: list[int] = Field(default_factory=list)


class CurrentActivityPayload(CamelModel):
    start_date: Optional[datetime] = None
    activity_hash: int = 0
    activity_info: Optional[ActivityInfoPayload] = None

    @field_validator("start_date")
    @classmethod
    def normalize_start_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    def to_domain(self) -> Optional[ActivitySnapshot]:
        # The poller reports "no activity" as hash 0.
        if self.activity_hash == 0:
            return None
        info = self.activity_info or ActivityInfoPayload()
        return ActivitySnapshot(
            start_date=self.start_date,
            activity_hash=self.activity_hash,
            category_hints=tuple(info.activity_modes),
            name=info.name or None,
        )


class CompletedActivityPayload(CamelModel):
    period: datetime
    instance_id: str
    completed: bool = False
    activity_duration_seconds: float = 0.0
    activity_hash: int = 0
    modes: list[int] = Field(default_factory=list)

    @field_validator("period")
    @classmethod
    def normalize_period(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def to_domain(self) -> CompletionRecord:
        return CompletionRecord(
            period=self.period,
            instance_id=self.instance_id,
            completed=self.completed,
            duration_seconds=self.activity_duration_seconds,
            activity_hash=self.activity_hash,
            category_hints=tuple(self.modes),
        )


class ProfileInfoPayload(CamelModel):
    display_name: str = ""
    display_tag: int = 0


class PlayerDataPayload(CamelModel):
    current_activity: Optional[CurrentActivityPayload] = None
    activity_history: list[CompletedActivityPayload] = Field(default_factory=list)
    profile_info: ProfileInfoPayload = Field(default_factory=ProfileInfoPayload)

    def to_domain(self) -> PlayerSnapshot:
        return PlayerSnapshot(
            current_activity=self.current_activity.to_domain() if self.current_activity else None,
            activity_history=tuple(record.to_domain() for record in self.activity_history),
            profile=ProfileInfo(
                display_name=self.profile_info.display_name,
                display_tag=self.profile_info.display_tag,
            ),
        )


class PlayerDataStatusPayload(CamelModel):
    last_update: Optional[PlayerDataPayload] = None
    error: Optional[str] = None
    history_loading: bool = False

    def to_domain(self) -> PlayerDataStatus:
        return PlayerDataStatus(
            last_update=self.last_update.to_domain() if self.last_update else None,
            error=self.error,
            history_loading=self.history_loading,
        )
