from __future__ import annotations
from datetime import date
from typing import List, Optional
from uuid import UUID
from loguru import logger

from ..cache.kv import create_kv_store
from ..cache.store import LocalCacheStore
from ..config import settings
from ..errors import RemoteUnavailable
from ..remote.base import RemoteStore
from ..remote.sql_store import SqlRemoteStore
from ..schemas import HabitRecord
from ..session import SessionProvider, require_owner
from .habit_service import HabitService
from .rollover_service import DayRolloverReconciler, ReconciliationReport
from .stats_service import DailyStatsService


class HabitSyncEngine:
    """
    Activation entry point for one client session.
    """

    def __init__(
        self,
        remote: RemoteStore,
        cache: LocalCacheStore,
        session: SessionProvider,
        tz_name: Optional[str] = None,
    ):
        self.session = session
        self.habits = HabitService(remote, cache)
        self.stats = DailyStatsService(remote)
        self.reconciler = DayRolloverReconciler(remote, self.habits, session, tz_name or settings.CALENDAR_TIMEZONE)

    @classmethod
    def from_settings(cls, session: SessionProvider) -> "HabitSyncEngine":
        return cls(SqlRemoteStore(), LocalCacheStore(create_kv_store()), session)

    async def start(self) -> List[HabitRecord]:
        """Publish the cached habits before anything touches the network."""
        return await self.habits.load_cached()

    async def activate(self, today: Optional[date] = None) -> ReconciliationReport:
        owner_id = require_owner(self.session)

        try:
            await self.habits.fetch_all(owner_id)
        except RemoteUnavailable as e:
            logger.warning("Could not refresh habits for owner {}, keeping cached list: {}", owner_id, e)

        try:
            return await self.reconciler.run(today)
        finally:
            await self._refresh_stats(owner_id)

    async def _refresh_stats(self, owner_id: UUID) -> None:
        if self.session.current_owner_id() != owner_id:
            return
        try:
            await self.stats.fetch_recent(owner_id)
        except RemoteUnavailable as e:
            logger.warning("Could not refresh daily stats for owner {}: {}", owner_id, e)

    async def sign_out(self) -> None:
        self.session.sign_out()
        self.stats.clear()
        await self.habits.clear()
