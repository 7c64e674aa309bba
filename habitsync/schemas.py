from __future__ import annotations
import datetime as dt
from datetime import datetime, timezone
from uuid import UUID, uuid4
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HabitRecord(BaseModel):
    """A habit as published to callers and mirrored into the local cache."""
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    title: str
    is_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    order: int = 1


class DailyStatRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    date: dt.date
    completion_percentage: float = Field(ge=0, le=100)
    habits_completed: int = Field(ge=0)
    total_habits: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def for_day(cls, owner_id: UUID, day: dt.date, habits_completed: int, total_habits: int) -> "DailyStatRecord":
        return cls(
            owner_id=owner_id,
            date=day,
            completion_percentage=completion_percentage(habits_completed, total_habits),
            habits_completed=habits_completed,
            total_habits=total_habits,
        )


class LastSeenRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    owner_id: UUID
    last_seen_day: dt.date
    updated_at: Optional[datetime] = Field(default_factory=utcnow)


def completion_percentage(habits_completed: int, total_habits: int) -> float:
    if total_habits <= 0:
        return 0.0
    return round(habits_completed / total_habits * 100, 2)
