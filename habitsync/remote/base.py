from __future__ import annotations
from datetime import date
from typing import Any, List, Optional, Protocol
from uuid import UUID

from ..schemas import HabitRecord, DailyStatRecord, LastSeenRecord


class RemoteStore(Protocol):
    """
    Authoritative record store over the habits, daily_stats and last_logins collections.
    Every method raises RemoteUnavailable when the store cannot serve the call.
    """

    async def select_habits(self, owner_id: UUID) -> List[HabitRecord]: ...

    async def insert_habit(self, habit: HabitRecord) -> HabitRecord: ...

    async def update_habit(self, habit_id: UUID, **fields: Any) -> HabitRecord: ...

    async def update_habits(self, owner_id: UUID, **fields: Any) -> int: ...

    async def delete_habit(self, habit_id: UUID) -> None: ...

    async def insert_daily_stat(self, stat: DailyStatRecord) -> bool: ...

    async def select_daily_stats(self, owner_id: UUID, limit: int) -> List[DailyStatRecord]: ...

    async def select_last_seen(self, owner_id: UUID) -> Optional[LastSeenRecord]: ...

    async def upsert_last_seen(self, owner_id: UUID, day: date) -> LastSeenRecord: ...
