from __future__ import annotations
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

import aiofiles
import aiofiles.os
from redis.asyncio import Redis

from ..config import settings


class KeyValueStore(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class FileKeyValueStore:
    """
    One file per key under a cache directory; writes go through a temp file and an atomic replace.
    """

    def __init__(self, directory: str | Path | None = None):
        self.directory = Path(directory or settings.CACHE_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{os.path.basename(key)}.json"

    async def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not await aiofiles.os.path.exists(path):
            return None
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            return await f.read()

    async def set(self, key: str, value: str) -> None:
        await aiofiles.os.makedirs(self.directory, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(value)
        await aiofiles.os.replace(tmp_path, path)

    async def delete(self, key: str) -> None:
        path = self._path(key)
        if await aiofiles.os.path.exists(path):
            await aiofiles.os.remove(path)


class RedisKeyValueStore:
    KEY_PREFIX = "habitsync:"

    def __init__(self, redis: Redis | None = None):
        self._redis = redis

    def _get_redis_client(self) -> Redis:
        """Lazily creates the Redis client from REDIS_URL."""
        if self._redis is None:
            self._redis = Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        return await self._get_redis_client().get(f"{self.KEY_PREFIX}{key}")

    async def set(self, key: str, value: str) -> None:
        await self._get_redis_client().set(f"{self.KEY_PREFIX}{key}", value)

    async def delete(self, key: str) -> None:
        await self._get_redis_client().delete(f"{self.KEY_PREFIX}{key}")

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()


class MemoryKeyValueStore:
    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)


def create_kv_store(backend: str | None = None) -> KeyValueStore:
    backend = (backend or settings.CACHE_BACKEND).lower()
    if backend == "file":
        return FileKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore()
    if backend == "memory":
        return MemoryKeyValueStore()
    raise ValueError(f"Unknown cache backend '{backend}'")
