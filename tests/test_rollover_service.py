import asyncio
from datetime import date, timedelta
from uuid import uuid4

import pytest

from habitsync.cache.kv import MemoryKeyValueStore
from habitsync.cache.store import LocalCacheStore
from habitsync.errors import PartialReconciliationFailure, RemoteUnavailable, SessionLost
from habitsync.schemas import HabitRecord, LastSeenRecord
from habitsync.services.habit_service import HabitService
from habitsync.services.rollover_service import DayRolloverReconciler
from habitsync.session import LocalSession
from fakes import FakeRemoteStore

MON = date(2026, 10, 19)
TUE, WED, THU = (MON + timedelta(days=n) for n in (1, 2, 3))


class Setup:
    def __init__(self, *completed, last_seen=None):
        self.owner = uuid4()
        self.remote = FakeRemoteStore()
        self.cache = LocalCacheStore(MemoryKeyValueStore())
        self.session = LocalSession(self.owner)
        self.habits = HabitService(self.remote, self.cache)
        self.reconciler = DayRolloverReconciler(self.remote, self.habits, self.session)
        for order, done in enumerate(completed, start=1):
            habit = HabitRecord(owner_id=self.owner, title=f"habit {order}", order=order, is_completed=done)
            self.remote.habits[habit.id] = habit
        if last_seen is not None:
            self.remote.last_seen[self.owner] = LastSeenRecord(owner_id=self.owner, last_seen_day=last_seen)
        asyncio.run(self.habits.fetch_all(self.owner))

    def stats_by_date(self):
        return {s.date: s for s in self.remote.stats if s.owner_id == self.owner}


def test_monday_to_thursday_scenario():
    s = Setup(True, False, last_seen=MON)

    report = asyncio.run(s.reconciler.run(THU))

    stats = s.stats_by_date()
    assert sorted(stats) == [MON, TUE, WED]
    assert stats[MON].completion_percentage == 50.0
    assert (stats[MON].habits_completed, stats[MON].total_habits) == (1, 2)
    for day in (TUE, WED):
        assert stats[day].completion_percentage == 0.0
        assert (stats[day].habits_completed, stats[day].total_habits) == (0, 2)

    assert [h.is_completed for h in s.habits.habits] == [False, False]
    assert all(not h.is_completed for h in s.remote.habits.values())
    assert [h.is_completed for h in asyncio.run(s.cache.load())] == [False, False]
    assert s.remote.last_seen[s.owner].last_seen_day == THU

    assert report.ok and report.new_day and report.reset_done and report.anchor_advanced
    assert report.backfilled == [MON, TUE, WED]


def test_gap_of_n_days_writes_n_stats_and_resets_once():
    s = Setup(True, True, True, last_seen=MON)
    today = MON + timedelta(days=6)

    asyncio.run(s.reconciler.run(today))

    dates = s.remote.stat_dates(s.owner)
    assert dates == [MON + timedelta(days=n) for n in range(6)]
    assert s.remote.count("update_habits") == 1


def test_same_day_rerun_is_a_no_op():
    s = Setup(True, False, last_seen=MON)

    async def _run():
        await s.reconciler.run(THU)
        return await s.reconciler.run(THU)

    second = asyncio.run(_run())

    assert len(s.remote.stats) == 3
    assert s.remote.count("update_habits") == 1
    assert not second.new_day
    assert second.backfilled == []


def test_first_ever_run_records_anchor_without_backfill():
    s = Setup(True)

    report = asyncio.run(s.reconciler.run(MON))

    assert s.remote.stats == []
    assert s.remote.count("update_habits") == 0
    assert s.remote.last_seen[s.owner].last_seen_day == MON
    assert report.last_seen_day == MON
    assert s.habits.habits[0].is_completed is True


def test_zero_habit_owner_never_divides_by_zero():
    s = Setup(last_seen=MON)

    asyncio.run(s.reconciler.run(WED))

    for stat in s.stats_by_date().values():
        assert stat.total_habits == 0
        assert stat.completion_percentage == 0.0


def test_failed_stat_write_does_not_stop_the_run():
    s = Setup(True, False, last_seen=MON)
    s.remote.fail_stat_days.add(TUE)

    with pytest.raises(PartialReconciliationFailure) as exc_info:
        asyncio.run(s.reconciler.run(THU))

    report = exc_info.value.report
    assert sorted(s.stats_by_date()) == [MON, WED]
    assert report.backfilled == [MON, WED]
    assert len(report.failures) == 1
    assert report.reset_done
    assert report.anchor_advanced
    assert s.remote.last_seen[s.owner].last_seen_day == THU


def test_failed_reset_is_reported_and_local_flags_kept():
    s = Setup(True, False, last_seen=MON)
    s.remote.fail_ops.add("update_habits")

    with pytest.raises(PartialReconciliationFailure) as exc_info:
        asyncio.run(s.reconciler.run(TUE))

    assert not exc_info.value.report.reset_done
    assert [h.is_completed for h in s.habits.habits] == [True, False]


def test_anchor_failure_rerun_creates_no_duplicates():
    s = Setup(True, False, last_seen=MON)
    s.remote.fail_ops.add("upsert_last_seen")

    with pytest.raises(PartialReconciliationFailure) as exc_info:
        asyncio.run(s.reconciler.run(THU))
    assert not exc_info.value.report.anchor_advanced
    assert s.remote.last_seen[s.owner].last_seen_day == MON

    s.remote.fail_ops.clear()
    report = asyncio.run(s.reconciler.run(THU))

    assert s.remote.stat_dates(s.owner) == [MON, TUE, WED]
    assert report.already_recorded == [MON, TUE, WED]
    assert s.remote.last_seen[s.owner].last_seen_day == THU
    # the boundary stat keeps the values of the first run
    assert s.stats_by_date()[MON].completion_percentage == 50.0


def test_unreachable_anchor_aborts_before_any_write():
    s = Setup(True, last_seen=MON)
    s.remote.fail_ops.add("select_last_seen")

    with pytest.raises(RemoteUnavailable):
        asyncio.run(s.reconciler.run(THU))
    assert s.remote.stats == []
    assert s.remote.count("update_habits") == 0


def test_concurrent_activations_share_one_run():
    s = Setup(True, False, last_seen=MON)

    async def _run():
        return await asyncio.gather(s.reconciler.run(THU), s.reconciler.run(THU), s.reconciler.run(THU))

    reports = asyncio.run(_run())

    assert reports[0] is reports[1] is reports[2]
    assert s.remote.count("select_last_seen") == 1
    assert s.remote.stat_dates(s.owner) == [MON, TUE, WED]
    assert s.remote.count("update_habits") == 1


def test_joining_caller_gets_the_running_day():
    s = Setup(True, False, last_seen=MON)

    async def _run():
        return await asyncio.gather(s.reconciler.run(THU), s.reconciler.run(THU + timedelta(days=1)))

    first, joined = asyncio.run(_run())

    assert joined is first
    assert joined.today == THU
    assert s.remote.stat_dates(s.owner) == [MON, TUE, WED]
    assert s.remote.last_seen[s.owner].last_seen_day == THU


def test_cancelled_caller_does_not_abort_the_run():
    s = Setup(True, False, last_seen=MON)
    s.remote.fail_stat_days.add(TUE)

    async def _run():
        caller = asyncio.create_task(s.reconciler.run(THU))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        while s.reconciler._in_flight:
            await asyncio.sleep(0)

    asyncio.run(_run())

    assert s.remote.stat_dates(s.owner) == [MON, WED]
    assert s.remote.last_seen[s.owner].last_seen_day == THU


def test_sign_out_mid_run_stops_writes_and_keeps_anchor():
    s = Setup(True, False, last_seen=MON)
    original_insert = s.remote.insert_daily_stat

    async def insert_then_sign_out(stat):
        created = await original_insert(stat)
        s.session.sign_out()
        return created

    s.remote.insert_daily_stat = insert_then_sign_out

    with pytest.raises(SessionLost):
        asyncio.run(s.reconciler.run(THU))

    assert s.remote.stat_dates(s.owner) == [MON]
    assert s.remote.count("update_habits") == 0
    assert s.remote.last_seen[s.owner].last_seen_day == MON


def test_no_session_raises_session_lost():
    s = Setup(True, last_seen=MON)
    s.session.sign_out()

    with pytest.raises(SessionLost):
        asyncio.run(s.reconciler.run(THU))
    assert s.remote.calls.count("select_last_seen") == 0


def test_anchor_ahead_of_today_is_not_rewound():
    s = Setup(True, last_seen=THU)

    report = asyncio.run(s.reconciler.run(MON))

    assert s.remote.stats == []
    assert not report.reset_done
    assert s.remote.last_seen[s.owner].last_seen_day == THU
