from __future__ import annotations
from datetime import date
from typing import List, Optional
from uuid import UUID
from loguru import logger

from ..config import settings
from ..errors import InvalidInput
from ..remote.base import RemoteStore
from ..schemas import DailyStatRecord
from .habit_service import parse_id


def completion_level(percentage: float) -> int:
    """Calendar heat level 0-4 for a completion percentage."""
    if percentage >= 95:
        return 4
    if percentage >= 80:
        return 3
    if percentage >= 50:
        return 2
    if percentage > 25:
        return 1
    return 0


class DailyStatsService:
    """Read side of the daily completion ledger."""

    def __init__(self, remote: RemoteStore):
        self.remote = remote
        self._stats: List[DailyStatRecord] = []

    @property
    def stats(self) -> List[DailyStatRecord]:
        return list(self._stats)

    async def fetch_recent(self, owner_id: UUID | str, limit: Optional[int] = None) -> List[DailyStatRecord]:
        owner_id = parse_id(owner_id, "owner id")
        limit = settings.STATS_DEFAULT_LIMIT if limit is None else limit
        if limit < 1:
            raise InvalidInput(f"limit must be positive, got {limit}")

        stats = await self.remote.select_daily_stats(owner_id, limit)
        self._stats = sorted(stats, key=lambda s: s.date, reverse=True)[:limit]
        logger.debug("Fetched {} daily stat(s) for owner {}", len(self._stats), owner_id)
        return self.stats

    def stat_for_day(self, day: date) -> Optional[DailyStatRecord]:
        return next((s for s in self._stats if s.date == day), None)

    def clear(self) -> None:
        self._stats = []
