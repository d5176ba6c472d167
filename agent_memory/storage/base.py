"""Abstract storage interface shared by the Redis and in-memory backends."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from contextlib import AbstractAsyncContextManager
from typing import Any


class KeyValueStore(ABC):
    """List/key-value/hash/set store with per-key TTL.

    Values handed to ``append_record``, ``replace_list`` and ``set_json`` are
    JSON-serialisable objects; implementations own the encoding.
    """

    # ── Lists (transcripts, memory categories) ──

    @abstractmethod
    async def append_record(self, list_key: str, record: Any) -> int:
        """Append one JSON value to the tail of a list; return the new length."""
        ...

    @abstractmethod
    async def list_records(self, list_key: str, limit: int | None = None) -> list[Any]:
        """Return decoded list entries in order (first ``limit`` when given).

        Entries that cannot be decoded are skipped.
        """
        ...

    @abstractmethod
    async def replace_list(self, list_key: str, records: list[Any]) -> None:
        """Replace the whole list with ``records``; an empty list deletes the key."""
        ...

    @abstractmethod
    async def list_raw(self, list_key: str) -> list[str]:
        """Return every list entry exactly as stored, including undecodable ones."""
        ...

    @abstractmethod
    async def replace_raw(self, list_key: str, raw_items: list[str]) -> None:
        """Replace the whole list with already-encoded entries; empty deletes the key."""
        ...

    # ── Plain keys ──

    @abstractmethod
    async def get_json(self, key: str) -> Any | None:
        ...

    @abstractmethod
    async def set_json(self, key: str, value: Any) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete a key of any type; return True if it existed."""
        ...

    @abstractmethod
    async def expire(self, key: str, seconds: int) -> None:
        ...

    # ── Hashes ──

    @abstractmethod
    async def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        ...

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, str]:
        ...

    # ── Sets ──

    @abstractmethod
    async def sadd(self, key: str, *members: str) -> None:
        ...

    @abstractmethod
    async def smembers(self, key: str) -> set[str]:
        ...

    @abstractmethod
    async def srem(self, key: str, *members: str) -> None:
        ...

    # ── Coordination / lifecycle ──

    @abstractmethod
    def lock(self, name: str) -> AbstractAsyncContextManager[Any]:
        """Return an async context manager holding an exclusive lock on ``name``."""
        ...

    async def close(self) -> None:
        """Release connections. Default: nothing to release."""
        return None
