"""API request/response schemas. Every response uses the same envelope."""

from typing import Any

from pydantic import BaseModel, Field

from ..core.enums import ServiceType
from ..core.schemas import ServiceSchemas
from ..core.validation import FieldError


class ApiResponse(BaseModel):
    """Envelope: ``success`` plus either ``data`` or ``error`` (and ``errors`` for validation)."""

    success: bool
    data: Any | None = None
    error: str | None = None
    errors: list[FieldError] | None = None


class StoreShortTermRequest(BaseModel):
    """Append one turn. ``data`` holds the turn: user_id, session_id, role, text, timestamp?, metadata?."""

    service_id: str = Field(min_length=1)
    data: dict[str, Any]


class StoreLongTermRequest(BaseModel):
    """Manually store one record in a tenant bucket."""

    service_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    bucket_name: str = Field(min_length=1)
    data: dict[str, Any]


class ExtractRequest(BaseModel):
    """Run one extraction cycle inline."""

    service_id: str = Field(min_length=1)
    session_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class CreateServiceRequest(BaseModel):
    """Create a tenant configuration."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    store_url: str | None = None
    service_type: ServiceType = ServiceType.FIXED
    agent_purpose: str = ""
    memory_goals: list[str] = Field(default_factory=list)
    memory_categories: list[str] = Field(default_factory=list)
    schemas: ServiceSchemas = Field(default_factory=ServiceSchemas)


class UpdateServiceRequest(BaseModel):
    """Partial update; omitted fields keep their stored values."""

    name: str | None = None
    store_url: str | None = None
    service_type: ServiceType | None = None
    agent_purpose: str | None = None
    memory_goals: list[str] | None = None
    memory_categories: list[str] | None = None
    schemas: ServiceSchemas | None = None
