from typing import Optional
import datetime as dt
from datetime import datetime, timezone
from uuid import UUID, uuid4
from sqlmodel import SQLModel, Field, UniqueConstraint


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Habit(SQLModel, table=True):
    """
    A user's habit; `order` is the display position within the owner's list.
    """
    __tablename__ = "habits"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(index=True)

    title: str = Field(max_length=200)
    is_completed: bool = Field(default=False)
    order: int = Field(default=1)

    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


class DailyStat(SQLModel, table=True):
    """
    Append-only completion ledger, one row per owner and calendar day.
    """
    __tablename__ = "daily_stats"
    __table_args__ = (UniqueConstraint("owner_id", "date", name="uq_daily_stats_owner_date"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    owner_id: UUID = Field(index=True)

    date: dt.date = Field(index=True)
    completion_percentage: float = Field(default=0.0)
    habits_completed: int = Field(default=0)
    total_habits: int = Field(default=0)

    created_at: datetime = Field(default_factory=_utcnow, nullable=False)


class LastLogin(SQLModel, table=True):
    """
    Day anchor: the last calendar day reconciled for an owner.
    """
    __tablename__ = "last_logins"

    owner_id: UUID = Field(primary_key=True)
    last_seen_day: dt.date
    updated_at: Optional[datetime] = Field(default_factory=_utcnow)
