"""Process-local store for lite/dev mode and tests (``memory://`` URLs)."""

import asyncio
import copy
import json
import time
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from typing import Any

from .base import KeyValueStore


class InMemoryStore(KeyValueStore):
    """KeyValueStore kept in Python dicts, with lazy TTL expiry.

    Values round-trip through JSON so callers see the same shapes as with Redis.
    """

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self._data: dict[str, Any] = {}
        self._expires_at: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _live(self, key: str) -> bool:
        deadline = self._expires_at.get(key)
        if deadline is not None and time.monotonic() >= deadline:
            self._data.pop(key, None)
            self._expires_at.pop(key, None)
        return key in self._data

    async def append_record(self, list_key: str, record: Any) -> int:
        if not self._live(list_key):
            self._data[list_key] = []
        items = self._data[list_key]
        items.append(json.dumps(record))
        return len(items)

    async def list_records(self, list_key: str, limit: int | None = None) -> list[Any]:
        if not self._live(list_key):
            return []
        items = self._data[list_key]
        if limit is not None:
            items = items[: max(limit, 0)]
        records = []
        for raw in items:
            try:
                records.append(json.loads(raw))
            except ValueError:
                continue
        return records

    async def replace_list(self, list_key: str, records: list[Any]) -> None:
        await self.replace_raw(list_key, [json.dumps(r) for r in records])

    async def list_raw(self, list_key: str) -> list[str]:
        if not self._live(list_key):
            return []
        return list(self._data[list_key])

    async def replace_raw(self, list_key: str, raw_items: list[str]) -> None:
        self._expires_at.pop(list_key, None)
        if not raw_items:
            self._data.pop(list_key, None)
            return
        self._data[list_key] = list(raw_items)

    async def get_json(self, key: str) -> Any | None:
        if not self._live(key):
            return None
        return json.loads(self._data[key])

    async def set_json(self, key: str, value: Any) -> None:
        self._expires_at.pop(key, None)
        self._data[key] = json.dumps(value)

    async def delete(self, key: str) -> bool:
        existed = self._live(key)
        self._data.pop(key, None)
        self._expires_at.pop(key, None)
        return existed

    async def expire(self, key: str, seconds: int) -> None:
        if self._live(key):
            self._expires_at[key] = time.monotonic() + seconds

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        if not self._live(key):
            self._data[key] = {}
        self._data[key].update({k: str(v) for k, v in mapping.items()})

    async def hgetall(self, key: str) -> dict[str, str]:
        if not self._live(key):
            return {}
        return dict(self._data[key])

    async def sadd(self, key: str, *members: str) -> None:
        if not self._live(key):
            self._data[key] = set()
        self._data[key].update(members)

    async def smembers(self, key: str) -> set[str]:
        if not self._live(key):
            return set()
        return copy.copy(self._data[key])

    async def srem(self, key: str, *members: str) -> None:
        if self._live(key):
            self._data[key].difference_update(members)

    def lock(self, name: str) -> AbstractAsyncContextManager[Any]:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    def ttl(self, key: str) -> float | None:
        """Seconds until ``key`` expires, or None if it has no TTL."""
        if not self._live(key):
            return None
        deadline = self._expires_at.get(key)
        return None if deadline is None else deadline - time.monotonic()
