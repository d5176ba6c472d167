"""Service (tenant) configuration registry kept in the global store.

Configs live at ``service_config:{id}`` as JSON; the set ``services:all``
indexes every known id.
"""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import ServiceAlreadyExistsError, TenantNotFoundError, ValidationError
from ..core.schemas import ServiceConfig, utc_now_iso
from ..storage.base import KeyValueStore
from ..storage.keys import RedisKeys

logger = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


def _dump(config: ServiceConfig) -> dict[str, Any]:
    return config.model_dump(mode="json", by_alias=True)


class ServiceRegistry:
    """CRUD over tenant configurations."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    async def create(self, config: ServiceConfig) -> ServiceConfig:
        key = RedisKeys.service_config(config.id)
        if await self.store.get_json(key) is not None:
            raise ServiceAlreadyExistsError(config.id)
        now = utc_now_iso()
        config = config.model_copy(update={"created_at": now, "updated_at": now})
        await self.store.set_json(key, _dump(config))
        await self.store.sadd(RedisKeys.SERVICES_INDEX, config.id)
        logger.info("service_created", service_id=config.id, service_type=config.service_type.value)
        return config

    async def get(self, service_id: str) -> ServiceConfig:
        raw = await self.store.get_json(RedisKeys.service_config(service_id))
        if raw is None:
            raise TenantNotFoundError(service_id)
        return ServiceConfig.model_validate(raw)

    async def list(self) -> list[ServiceConfig]:
        """Return every indexed config, sorted by id; stale index entries are skipped."""
        configs = []
        for service_id in sorted(await self.store.smembers(RedisKeys.SERVICES_INDEX)):
            raw = await self.store.get_json(RedisKeys.service_config(service_id))
            if raw is None:
                logger.warning("service_index_stale", service_id=service_id)
                continue
            try:
                configs.append(ServiceConfig.model_validate(raw))
            except PydanticValidationError:
                logger.warning("service_config_malformed", service_id=service_id)
        return configs

    async def update(self, service_id: str, patch: dict[str, Any]) -> ServiceConfig:
        """Merge ``patch`` into the stored config; ``id`` and ``created_at`` are preserved."""
        current = await self.get(service_id)
        merged = _dump(current)
        merged.update({k: v for k, v in patch.items() if k not in _IMMUTABLE_FIELDS})
        merged["updated_at"] = utc_now_iso()
        try:
            updated = ServiceConfig.model_validate(merged)
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        await self.store.set_json(RedisKeys.service_config(service_id), _dump(updated))
        logger.info("service_updated", service_id=service_id, fields=sorted(patch))
        return updated

    async def delete(self, service_id: str) -> None:
        existed = await self.store.delete(RedisKeys.service_config(service_id))
        if not existed:
            raise TenantNotFoundError(service_id)
        await self.store.srem(RedisKeys.SERVICES_INDEX, service_id)
        logger.info("service_deleted", service_id=service_id)
