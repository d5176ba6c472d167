"""Long-term memory store: one append-only list per (user, service, category)."""

import json
from collections.abc import Iterable
from contextlib import AbstractAsyncContextManager
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..core.schemas import MemoryRecord
from ..storage.base import KeyValueStore
from ..storage.keys import RedisKeys

logger = structlog.get_logger(__name__)


def _dump(record: MemoryRecord) -> dict[str, Any]:
    return record.model_dump(mode="json", exclude_none=True)


def _raw_record_id(raw: str) -> str | None:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return None
    return value.get("record_id") if isinstance(value, dict) else None


class LongTermMemoryStore:
    """Category lists over a tenant's store. Lists have no size cap and no eviction."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def append_record(self, service_id: str, record: MemoryRecord) -> None:
        key = RedisKeys.user_bucket(record.user_id, service_id, record.category)
        await self.store.append_record(key, _dump(record))

    async def list_records(self, service_id: str, user_id: str, category: str) -> list[MemoryRecord]:
        """Records in append order; malformed stored entries are skipped."""
        key = RedisKeys.user_bucket(user_id, service_id, category)
        records = []
        for raw in await self.store.list_records(key):
            try:
                records.append(MemoryRecord.model_validate(raw))
            except PydanticValidationError:
                logger.warning(
                    "long_term_entry_malformed",
                    service_id=service_id,
                    user_id=user_id,
                    category=category,
                )
        return records

    async def replace_records(
        self,
        service_id: str,
        user_id: str,
        category: str,
        records: Iterable[MemoryRecord],
    ) -> None:
        key = RedisKeys.user_bucket(user_id, service_id, category)
        await self.store.replace_list(key, [_dump(r) for r in records])

    async def remove_record(
        self,
        service_id: str,
        user_id: str,
        category: str,
        record_id: str,
    ) -> bool:
        """Drop the entry with ``record_id``; return False when it is not in the list.

        Works on the stored strings, so every other entry, including ones that no
        longer parse as a record, is written back byte for byte.
        """
        key = RedisKeys.user_bucket(user_id, service_id, category)
        raw_items = await self.store.list_raw(key)
        kept = [raw for raw in raw_items if _raw_record_id(raw) != record_id]
        if len(kept) == len(raw_items):
            return False
        await self.store.replace_raw(key, kept)
        return True

    async def list_all(
        self,
        service_id: str,
        user_id: str,
        categories: Iterable[str],
    ) -> dict[str, list[MemoryRecord]]:
        return {c: await self.list_records(service_id, user_id, c) for c in categories}

    def lock(self, service_id: str, user_id: str, category: str) -> AbstractAsyncContextManager[Any]:
        return self.store.lock(RedisKeys.bucket_lock(user_id, service_id, category))
