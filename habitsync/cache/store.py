from __future__ import annotations
import json
from typing import List, Sequence

from loguru import logger
from pydantic import ValidationError

from ..config import settings
from ..schemas import HabitRecord
from .kv import KeyValueStore


class LocalCacheStore:
    """
    Last-known habit list kept as a single JSON blob for offline rendering.

    Reads never fail: a missing, unreadable or corrupt blob loads as an empty list,
    and entries carrying unknown fields are accepted with those fields dropped.
    """

    def __init__(self, kv: KeyValueStore, key: str | None = None):
        self.kv = kv
        self.key = key or settings.CACHE_KEY

    async def load(self) -> List[HabitRecord]:
        try:
            raw = await self.kv.get(self.key)
        except Exception as e:
            logger.warning("Habit cache '{}' unreadable, starting empty: {}", self.key, e)
            return []
        if raw is None:
            return []

        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning("Habit cache '{}' is corrupt, starting empty: {}", self.key, e)
            return []
        if not isinstance(payload, list):
            logger.warning("Habit cache '{}' has unexpected shape {}, starting empty", self.key, type(payload).__name__)
            return []

        habits: List[HabitRecord] = []
        for entry in payload:
            try:
                habits.append(HabitRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning("Skipping invalid cached habit entry: {}", e)
        return habits

    async def save(self, habits: Sequence[HabitRecord]) -> None:
        blob = json.dumps([h.model_dump(mode="json") for h in habits])
        try:
            await self.kv.set(self.key, blob)
        except Exception as e:
            logger.error("Failed to write habit cache '{}': {}", self.key, e)

    async def clear(self) -> None:
        try:
            await self.kv.delete(self.key)
        except Exception as e:
            logger.error("Failed to clear habit cache '{}': {}", self.key, e)
