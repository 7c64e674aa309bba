import asyncio
import sys
from uuid import UUID

from loguru import logger

from habitsync.config import settings
from habitsync.db import init_db
from habitsync.errors import HabitSyncError
from habitsync.services.stats_service import completion_level
from habitsync.services.sync_engine import HabitSyncEngine
from habitsync.session import LocalSession


async def main(owner_id: UUID) -> int:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL)

    await init_db()
    engine = HabitSyncEngine.from_settings(LocalSession(owner_id))
    await engine.start()

    try:
        report = await engine.activate()
    except HabitSyncError as e:
        logger.error("Activation failed: {}", e)
        return 1

    logger.info(
        "Anchor {} -> {}, backfilled {}",
        report.last_seen_day, report.today, [d.isoformat() for d in report.backfilled],
    )
    for habit in engine.habits.habits:
        logger.info("[{}] {} {}", habit.order, "x" if habit.is_completed else " ", habit.title)
    for stat in engine.stats.stats:
        logger.info(
            "{}: {}/{} ({}%, level {})",
            stat.date, stat.habits_completed, stat.total_habits,
            stat.completion_percentage, completion_level(stat.completion_percentage),
        )
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: python -m scripts.run_reconcile <owner-uuid>")
        sys.exit(2)
    sys.exit(asyncio.run(main(UUID(sys.argv[1]))))
