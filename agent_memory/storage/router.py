"""Tenant store routing: service id -> config -> dedicated store handle."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]

from ..core.exceptions import ConfigurationError
from ..core.schemas import ServiceConfig
from .base import KeyValueStore
from .in_memory import InMemoryStore
from .redis import RedisStore

if TYPE_CHECKING:
    from ..memory.services import ServiceRegistry

logger = structlog.get_logger(__name__)

_MEMORY_SCHEME = "memory"
_REDIS_SCHEMES = frozenset({"redis", "rediss", "unix"})

# Bounded: handles for idle tenants are dropped and rebuilt on demand.
_HANDLE_CACHE_SIZE = 256
_HANDLE_CACHE_TTL_SECONDS = 3600


class StoreFactory:
    """Builds store handles from URLs. ``memory://`` handles are shared per URL."""

    def __init__(self) -> None:
        self._memory_stores: dict[str, InMemoryStore] = {}

    def create(self, url: str) -> KeyValueStore:
        scheme = urlparse(url).scheme.lower()
        if scheme == _MEMORY_SCHEME:
            store = self._memory_stores.get(url)
            if store is None:
                store = self._memory_stores[url] = InMemoryStore(name=url)
            return store
        if scheme in _REDIS_SCHEMES:
            return RedisStore.from_url(url)
        raise ConfigurationError(f"Unsupported store URL scheme: {scheme or '<none>'}")


class TenantStoreRouter:
    """Resolves a tenant's configuration and its dedicated store."""

    def __init__(
        self,
        registry: ServiceRegistry,
        factory: StoreFactory | None = None,
        cache_size: int = _HANDLE_CACHE_SIZE,
        cache_ttl: float = _HANDLE_CACHE_TTL_SECONDS,
    ) -> None:
        self.registry = registry
        self.factory = factory or StoreFactory()
        self._handles: TTLCache[str, KeyValueStore] = TTLCache(maxsize=cache_size, ttl=cache_ttl)

    async def get_config(self, service_id: str) -> ServiceConfig:
        """Raises TenantNotFoundError for unknown ids."""
        return await self.registry.get(service_id)

    def store_for(self, config: ServiceConfig) -> KeyValueStore:
        """Return the tenant's store handle; ConfigurationError when it has no store URL."""
        url = (config.store_url or "").strip()
        if not url:
            raise ConfigurationError(
                f"Service {config.id} has no store_url configured. "
                "Set store_url in the service configuration."
            )
        store = self._handles.get(url)
        if store is None:
            store = self.factory.create(url)
            self._handles[url] = store
            logger.debug("tenant_store_opened", service_id=config.id, scheme=urlparse(url).scheme)
        return store

    async def resolve(self, service_id: str) -> tuple[ServiceConfig, KeyValueStore]:
        config = await self.get_config(service_id)
        return config, self.store_for(config)

    async def close(self) -> None:
        handles = list(self._handles.values())
        self._handles.clear()
        for store in handles:
            await store.close()
