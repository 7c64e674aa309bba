from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence
from uuid import UUID
from loguru import logger

from ..cache.store import LocalCacheStore
from ..errors import InvalidInput, RemoteUnavailable
from ..remote.base import RemoteStore
from ..schemas import HabitRecord, utcnow


def parse_id(value: UUID | str, what: str = "id") -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise InvalidInput(f"Malformed {what}: {value!r}")


@dataclass
class ReorderResult:
    habits: List[HabitRecord]
    failed_ids: List[UUID] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_ids


class HabitService:
    """
    Owns the published habit list of one session.

    Every mutation goes to the remote store first; the published list and the
    local cache change only once the remote call has been acknowledged.
    Reordering is the exception: positions apply locally first, then changed
    rows are persisted one by one. The cache always receives the remote-confirmed
    positions, tracked per habit id, so an unpersisted position never reaches it.
    """

    def __init__(self, remote: RemoteStore, cache: LocalCacheStore):
        self.remote = remote
        self.cache = cache
        self._habits: List[HabitRecord] = []
        self._confirmed_orders: Dict[UUID, int] = {}

    @property
    def habits(self) -> List[HabitRecord]:
        return list(self._habits)

    def _publish(self, habits: Iterable[HabitRecord]) -> List[HabitRecord]:
        self._habits = sorted(habits, key=lambda h: h.order)
        return self.habits

    def _confirmed_view(self) -> List[HabitRecord]:
        view = [
            h if self._confirmed_orders.get(h.id, h.order) == h.order
            else h.model_copy(update={"order": self._confirmed_orders[h.id]})
            for h in self._habits
        ]
        return sorted(view, key=lambda h: h.order)

    async def _save_cache(self) -> None:
        await self.cache.save(self._confirmed_view())

    async def load_cached(self) -> List[HabitRecord]:
        """Seed the published list from the local cache."""
        cached = await self.cache.load()
        logger.debug("Loaded {} habit(s) from cache", len(cached))
        self._confirmed_orders = {h.id: h.order for h in cached}
        return self._publish(cached)

    async def fetch_all(self, owner_id: UUID | str) -> List[HabitRecord]:
        owner_id = parse_id(owner_id, "owner id")
        habits = await self.remote.select_habits(owner_id)
        published = self._publish(habits)
        self._confirmed_orders = {h.id: h.order for h in published}
        await self._save_cache()
        logger.info("Fetched {} habit(s) for owner {}", len(published), owner_id)
        return published

    async def add(self, owner_id: UUID | str, title: str) -> HabitRecord:
        owner_id = parse_id(owner_id, "owner id")
        title = (title or "").strip()
        if not title:
            raise InvalidInput("Habit title must not be empty")

        # max + 1, gaps are never reused
        next_order = max([*(h.order for h in self._habits), *self._confirmed_orders.values()], default=0) + 1
        habit = HabitRecord(
            owner_id=owner_id,
            title=title,
            is_completed=False,
            created_at=utcnow(),
            order=next_order,
        )
        created = await self.remote.insert_habit(habit)

        self._confirmed_orders[created.id] = created.order
        self._publish([*self._habits, created])
        await self._save_cache()
        logger.info("Created habit {} (order {}) for owner {}", created.id, created.order, owner_id)
        return created

    async def toggle(self, habit: HabitRecord) -> HabitRecord:
        updated = await self.remote.update_habit(habit.id, is_completed=not habit.is_completed)

        if any(h.id == habit.id for h in self._habits):
            self._confirmed_orders[habit.id] = updated.order
            # keep the displayed position, the remote one is tracked separately
            self._publish(
                updated.model_copy(update={"order": h.order}) if h.id == habit.id else h
                for h in self._habits
            )
            await self._save_cache()
        logger.info("Habit {} marked {}", habit.id, "done" if updated.is_completed else "not done")
        return updated

    async def delete(self, habit: HabitRecord) -> List[HabitRecord]:
        await self.remote.delete_habit(habit.id)
        self._confirmed_orders.pop(habit.id, None)
        published = self._publish(h for h in self._habits if h.id != habit.id)
        await self._save_cache()
        logger.info("Deleted habit {}", habit.id)
        return published

    async def reorder(self, owner_id: UUID | str, new_order_of_ids: Sequence[UUID | str]) -> ReorderResult:
        """
        Apply a new display order; only habits whose remote position differs are written.
        Failed writes are reported in the result and do not undo the local order;
        a later reorder retries them because they stay unconfirmed.
        """
        owner_id = parse_id(owner_id, "owner id")
        ids = [parse_id(i, "habit id") for i in new_order_of_ids]
        previous = {h.id: h for h in self._habits}
        if len(ids) != len(previous) or set(ids) != set(previous):
            raise InvalidInput("Reorder must list every habit exactly once")
        if any(h.owner_id != owner_id for h in previous.values()):
            raise InvalidInput(f"Habit list does not belong to owner {owner_id}")

        reordered: List[HabitRecord] = []
        changed: List[HabitRecord] = []
        for position, habit_id in enumerate(ids, start=1):
            habit = previous[habit_id]
            if habit.order != position:
                habit = habit.model_copy(update={"order": position})
            if self._confirmed_orders.get(habit_id) != position:
                changed.append(habit)
            reordered.append(habit)
        self._publish(reordered)

        failed: List[UUID] = []
        for habit in changed:
            try:
                await self.remote.update_habit(habit.id, order=habit.order)
            except RemoteUnavailable as e:
                logger.warning("Failed to persist order {} for habit {}: {}", habit.order, habit.id, e)
                failed.append(habit.id)
            else:
                self._confirmed_orders[habit.id] = habit.order

        await self._save_cache()

        logger.info(
            "Reordered {} habit(s) for owner {}: {} written, {} failed",
            len(reordered), owner_id, len(changed) - len(failed), len(failed),
        )
        return ReorderResult(habits=self.habits, failed_ids=failed)

    async def reset_completions(self, owner_id: UUID | str) -> List[HabitRecord]:
        """Clear every completion flag of the owner, remotely then locally."""
        owner_id = parse_id(owner_id, "owner id")
        updated = await self.remote.update_habits(owner_id, is_completed=False)
        published = self._publish(h.model_copy(update={"is_completed": False}) for h in self._habits)
        await self._save_cache()
        logger.info("Reset completion flags of {} habit(s) for owner {}", updated, owner_id)
        return published

    async def clear(self) -> None:
        self._habits = []
        self._confirmed_orders = {}
        await self.cache.clear()
