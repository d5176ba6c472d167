"""Redis-backed store for the global config store and tenant data stores."""

import json
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from typing import Any

import redis.asyncio as redis
import structlog

from ..core.exceptions import StorageConnectionError
from .base import KeyValueStore

_logger = structlog.get_logger(__name__)

# Lock expiry guards against a crashed holder; blocking_timeout bounds the wait.
_LOCK_TIMEOUT_SECONDS = 30
_LOCK_BLOCKING_TIMEOUT_SECONDS = 10


def _decode(raw: Any, key: str) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        _logger.warning("store_entry_undecodable", key=key)
        return None


class RedisStore(KeyValueStore):
    """KeyValueStore over ``redis.asyncio``; values are JSON strings."""

    def __init__(self, client: Any, url: str | None = None) -> None:
        self.client = client
        self.url = url

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        """Build a store from a ``redis://`` or ``rediss://`` URL."""
        try:
            client = redis.from_url(url, decode_responses=True)
        except ValueError as e:
            raise StorageConnectionError(f"Invalid Redis URL: {e}") from e
        return cls(client, url=url)

    async def append_record(self, list_key: str, record: Any) -> int:
        return await self.client.rpush(list_key, json.dumps(record))

    async def list_records(self, list_key: str, limit: int | None = None) -> list[Any]:
        if limit is not None and limit <= 0:
            return []
        end = -1 if limit is None else limit - 1
        raw_items = await self.client.lrange(list_key, 0, end)
        records = []
        for raw in raw_items:
            value = _decode(raw, list_key)
            if value is not None:
                records.append(value)
        return records

    async def replace_list(self, list_key: str, records: list[Any]) -> None:
        await self.replace_raw(list_key, [json.dumps(r) for r in records])

    async def list_raw(self, list_key: str) -> list[str]:
        return list(await self.client.lrange(list_key, 0, -1))

    async def replace_raw(self, list_key: str, raw_items: list[str]) -> None:
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.delete(list_key)
            if raw_items:
                pipe.rpush(list_key, *raw_items)
            await pipe.execute()

    async def get_json(self, key: str) -> Any | None:
        raw = await self.client.get(key)
        if raw is None:
            return None
        return _decode(raw, key)

    async def set_json(self, key: str, value: Any) -> None:
        await self.client.set(key, json.dumps(value))

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(key))

    async def expire(self, key: str, seconds: int) -> None:
        await self.client.expire(key, seconds)

    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        await self.client.hset(key, mapping=dict(mapping))

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(await self.client.hgetall(key) or {})

    async def sadd(self, key: str, *members: str) -> None:
        if members:
            await self.client.sadd(key, *members)

    async def smembers(self, key: str) -> set[str]:
        return set(await self.client.smembers(key) or ())

    async def srem(self, key: str, *members: str) -> None:
        if members:
            await self.client.srem(key, *members)

    def lock(self, name: str) -> AbstractAsyncContextManager[Any]:
        return self.client.lock(
            name,
            timeout=_LOCK_TIMEOUT_SECONDS,
            blocking_timeout=_LOCK_BLOCKING_TIMEOUT_SECONDS,
        )

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except Exception as e:
            _logger.warning("redis_close_failed", url=self.url, error=str(e))
