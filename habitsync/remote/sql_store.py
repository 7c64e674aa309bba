from __future__ import annotations
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncGenerator, List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select
from loguru import logger

from ..db import AsyncSessionLocal, get_session
from ..errors import RemoteUnavailable
from ..models.habit import Habit, DailyStat, LastLogin
from ..schemas import HabitRecord, DailyStatRecord, LastSeenRecord


class SqlRemoteStore:
    """
    RemoteStore backed by SQLModel tables on an async SQLAlchemy engine.
    Each call runs in its own session and commits before returning.
    """

    def __init__(self, session_factory: sessionmaker | None = None):
        self._factory = session_factory or AsyncSessionLocal

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with get_session(self._factory) as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            logger.warning("Remote store call '{}' failed: {}", operation, e)
            raise RemoteUnavailable(f"{operation} failed: {e}") from e

    # --- habits ---

    async def select_habits(self, owner_id: UUID) -> List[HabitRecord]:
        async with self._session("select habits") as session:
            result = await session.execute(
                select(Habit).where(Habit.owner_id == owner_id).order_by(Habit.order.asc())
            )
            return [HabitRecord.model_validate(row) for row in result.scalars().all()]

    async def insert_habit(self, habit: HabitRecord) -> HabitRecord:
        async with self._session("insert habit") as session:
            row = Habit(**habit.model_dump())
            session.add(row)
            await session.flush()
            return HabitRecord.model_validate(row)

    async def update_habit(self, habit_id: UUID, **fields: Any) -> HabitRecord:
        async with self._session("update habit") as session:
            row = await session.get(Habit, habit_id)
            if row is None:
                raise RemoteUnavailable(f"Habit {habit_id} not found")
            for name, value in fields.items():
                setattr(row, name, value)
            session.add(row)
            await session.flush()
            return HabitRecord.model_validate(row)

    async def update_habits(self, owner_id: UUID, **fields: Any) -> int:
        async with self._session("bulk update habits") as session:
            result = await session.execute(
                update(Habit).where(Habit.owner_id == owner_id).values(**fields)
            )
            return result.rowcount or 0

    async def delete_habit(self, habit_id: UUID) -> None:
        async with self._session("delete habit") as session:
            row = await session.get(Habit, habit_id)
            if row is not None:
                await session.delete(row)

    # --- daily_stats ---

    async def insert_daily_stat(self, stat: DailyStatRecord) -> bool:
        """Insert unless a stat already exists for (owner_id, date); returns True when a row was created."""
        async with self._session("insert daily stat") as session:
            result = await session.execute(
                select(DailyStat.id).where(
                    DailyStat.owner_id == stat.owner_id,
                    DailyStat.date == stat.date,
                )
            )
            if result.scalar_one_or_none() is not None:
                logger.debug("Daily stat for owner {} on {} already exists", stat.owner_id, stat.date)
                return False

            session.add(DailyStat(**stat.model_dump()))
            try:
                await session.flush()
            except IntegrityError:
                # Lost the race against another writer for the same day
                await session.rollback()
                return False
            return True

    async def select_daily_stats(self, owner_id: UUID, limit: int) -> List[DailyStatRecord]:
        async with self._session("select daily stats") as session:
            result = await session.execute(
                select(DailyStat)
                .where(DailyStat.owner_id == owner_id)
                .order_by(DailyStat.date.desc())
                .limit(limit)
            )
            return [DailyStatRecord.model_validate(row) for row in result.scalars().all()]

    # --- last_logins ---

    async def select_last_seen(self, owner_id: UUID) -> Optional[LastSeenRecord]:
        async with self._session("select last login") as session:
            result = await session.execute(
                select(LastLogin).where(LastLogin.owner_id == owner_id).limit(1)
            )
            row = result.scalar_one_or_none()
            return LastSeenRecord.model_validate(row) if row else None

    async def upsert_last_seen(self, owner_id: UUID, day: date) -> LastSeenRecord:
        async with self._session("upsert last login") as session:
            row = await session.get(LastLogin, owner_id)
            if row is None:
                row = LastLogin(owner_id=owner_id, last_seen_day=day)
            else:
                row.last_seen_day = day
                row.updated_at = datetime.now(timezone.utc)
            session.add(row)
            await session.flush()
            return LastSeenRecord.model_validate(row)
