from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID
from loguru import logger

from ..errors import PartialReconciliationFailure, RemoteUnavailable
from ..remote.base import RemoteStore
from ..schemas import DailyStatRecord
from ..session import SessionProvider, require_owner
from ..utils.calendar import days_between, today_in_zone
from .habit_service import HabitService


@dataclass
class ReconciliationReport:
    owner_id: UUID
    today: date
    last_seen_day: Optional[date] = None
    backfilled: List[date] = field(default_factory=list)
    already_recorded: List[date] = field(default_factory=list)
    reset_done: bool = False
    anchor_advanced: bool = False
    failures: List[str] = field(default_factory=list)

    @property
    def new_day(self) -> bool:
        return self.last_seen_day is not None and self.last_seen_day < self.today

    @property
    def ok(self) -> bool:
        return not self.failures


class DayRolloverReconciler:
    """
    Closes out every calendar day that elapsed since the owner's anchor (last_logins).

    For a gap [last_seen_day, today) it writes one DailyStat per day: the anchor day
    from the current completion flags, each fully skipped day as 0%. Then it clears
    the completion flags once and finally moves the anchor to today. The anchor is
    written last, so an interrupted run is simply redone by the next activation;
    stat writes are insert-if-absent per (owner, date) and never duplicate a day.

    Only one run per owner is in flight: concurrent callers join the running one.
    """

    def __init__(
        self,
        remote: RemoteStore,
        habit_service: HabitService,
        session: SessionProvider,
        tz_name: Optional[str] = None,
    ):
        self.remote = remote
        self.habit_service = habit_service
        self.session = session
        self.tz_name = tz_name
        self._in_flight: Dict[UUID, Tuple[asyncio.Task, date]] = {}

    async def run(self, today: Optional[date] = None) -> ReconciliationReport:
        owner_id = require_owner(self.session)

        running = self._in_flight.get(owner_id)
        if running is None or running[0].done():
            run_day = today or today_in_zone(self.tz_name)
            task = asyncio.create_task(self._reconcile(owner_id, run_day))
            self._in_flight[owner_id] = (task, run_day)
            task.add_done_callback(lambda t, o=owner_id: self._forget(o, t))
        else:
            task, run_day = running
            if today is not None and today != run_day:
                logger.warning(
                    "Reconciliation for owner {} already running for {}, requested {} is ignored",
                    owner_id, run_day, today,
                )
            else:
                logger.info("Reconciliation for owner {} already running, joining it", owner_id)

        # the run finishes even if this caller goes away
        return await asyncio.shield(task)

    def _forget(self, owner_id: UUID, task: asyncio.Task) -> None:
        running = self._in_flight.get(owner_id)
        if running is not None and running[0] is task:
            del self._in_flight[owner_id]
        # retrieved here too, in case every awaiting caller was cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Reconciliation for owner {} ended with {!r}", owner_id, task.exception())

    async def _reconcile(self, owner_id: UUID, today: date) -> ReconciliationReport:
        report = ReconciliationReport(owner_id=owner_id, today=today)

        anchor = await self.remote.select_last_seen(owner_id)
        last_seen_day = anchor.last_seen_day if anchor else today
        report.last_seen_day = last_seen_day

        if last_seen_day > today:
            logger.warning(
                "Anchor {} for owner {} is ahead of today {}, skipping rollover",
                last_seen_day, owner_id, today,
            )
        elif last_seen_day < today:
            logger.info("Day rollover for owner {}: {} -> {}", owner_id, last_seen_day, today)
            await self._backfill(owner_id, last_seen_day, today, report)
            await self._reset(owner_id, report)
        else:
            logger.debug("Owner {} already reconciled for {}", owner_id, today)

        require_owner(self.session, owner_id)
        anchor_day = max(today, last_seen_day)
        try:
            await self.remote.upsert_last_seen(owner_id, anchor_day)
            report.anchor_advanced = True
        except RemoteUnavailable as e:
            logger.error("Failed to advance anchor to {} for owner {}: {}", anchor_day, owner_id, e)
            report.failures.append(f"anchor {anchor_day}: {e}")

        if report.failures:
            raise PartialReconciliationFailure(report)

        logger.info(
            "Reconciled owner {} for {}: {} stat(s) written, reset={}",
            owner_id, today, len(report.backfilled), report.reset_done,
        )
        return report

    async def _backfill(self, owner_id: UUID, last_seen_day: date, today: date, report: ReconciliationReport) -> None:
        habits = self.habit_service.habits
        total = len(habits)
        completed = sum(1 for h in habits if h.is_completed)

        # anchor day from the live flags, skipped days count as absent
        days = [(last_seen_day, completed, True)]
        days.extend((day, 0, False) for day in days_between(last_seen_day, today))

        for day, habits_completed, was_present in days:
            require_owner(self.session, owner_id)
            stat = DailyStatRecord.for_day(owner_id, day, habits_completed, total)
            try:
                created = await self.remote.insert_daily_stat(stat)
            except RemoteUnavailable as e:
                logger.error("Failed to store daily stat for owner {} on {}: {}", owner_id, day, e)
                report.failures.append(f"stat {day}: {e}")
                continue

            if created:
                report.backfilled.append(day)
                logger.debug(
                    "Stored stat for owner {} on {}: {}/{} ({}%), present={}",
                    owner_id, day, habits_completed, total, stat.completion_percentage, was_present,
                )
            else:
                report.already_recorded.append(day)

    async def _reset(self, owner_id: UUID, report: ReconciliationReport) -> None:
        require_owner(self.session, owner_id)
        try:
            await self.habit_service.reset_completions(owner_id)
            report.reset_done = True
        except RemoteUnavailable as e:
            logger.error("Failed to reset habits for owner {}: {}", owner_id, e)
            report.failures.append(f"reset: {e}")
