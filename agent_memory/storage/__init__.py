"""Storage layer: Redis and in-memory stores, key layout, tenant routing."""

from .base import KeyValueStore
from .in_memory import InMemoryStore
from .keys import RedisKeys
from .redis import RedisStore
from .router import StoreFactory, TenantStoreRouter

__all__ = [
    "InMemoryStore",
    "KeyValueStore",
    "RedisKeys",
    "RedisStore",
    "StoreFactory",
    "TenantStoreRouter",
]
