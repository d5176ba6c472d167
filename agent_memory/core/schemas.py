"""Core Pydantic schemas for transcripts, memory records, and service configuration."""

import json
import secrets
import string
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator

from .enums import ConsolidationAction, FieldType, Role, ServiceType

_RECORD_ID_ALPHABET = string.ascii_letters + string.digits
_RECORD_ID_LENGTH = 12


def new_record_id() -> str:
    """Generate a fresh record id: ``mem-`` followed by 12 random alphanumerics."""
    return "mem-" + "".join(secrets.choice(_RECORD_ID_ALPHABET) for _ in range(_RECORD_ID_LENGTH))


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


# ── Transcripts ─────────────────────────────────────────────────────


class TranscriptTurn(BaseModel):
    """One utterance in a session. Immutable once appended."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    user_id: str = ""
    session_id: str
    role: Role
    text: str
    timestamp: str = Field(default_factory=utc_now_iso)
    metadata: dict[str, Any] | None = None

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Role:
        return Role.normalize(value)


class SessionMetadata(BaseModel):
    """Per-session bookkeeping kept next to the transcript."""

    user_id: str = ""
    service_id: str
    last_activity: str = Field(default_factory=utc_now_iso)


class Session(BaseModel):
    """Session metadata plus its ordered turns."""

    session_id: str
    metadata: SessionMetadata
    messages: list[TranscriptTurn] = Field(default_factory=list)


# ── Memory content (two-case tagged variant) ───────────────────────


class TextContent(BaseModel):
    """Free-text memory content."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str

    @model_serializer
    def _wire(self) -> dict[str, Any]:
        return {"text": self.text}

    def render(self) -> str:
        return self.text


class StructuredContent(BaseModel):
    """Schema-shaped memory content."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["structured"] = "structured"
    structured: dict[str, Any]

    @model_serializer
    def _wire(self) -> dict[str, Any]:
        return {"structured": self.structured}

    def render(self) -> str:
        return json.dumps(self.structured, separators=(",", ":"), ensure_ascii=False)


MemoryContent = TextContent | StructuredContent


def content_from_wire(value: Any) -> MemoryContent | None:
    """Build content from its wire shape, or None when the shape is unusable.

    Any non-empty ``text`` string, whitespace included, wins over ``structured``.
    """
    if isinstance(value, (TextContent, StructuredContent)):
        return value
    if not isinstance(value, dict):
        return None
    text = value.get("text")
    if isinstance(text, str) and text:
        return TextContent(text=text)
    structured = value.get("structured")
    if isinstance(structured, dict):
        return StructuredContent(structured=structured)
    return None


class MemoryRecord(BaseModel):
    """A durable unit of long-term memory."""

    record_id: str = Field(default_factory=new_record_id)
    category: str
    user_id: str
    content: MemoryContent
    created_at: str = Field(default_factory=utc_now_iso)
    metadata: dict[str, Any] | None = None

    @field_validator("content", mode="before")
    @classmethod
    def _parse_content(cls, value: Any) -> MemoryContent:
        content = content_from_wire(value)
        if content is None:
            raise ValueError("content must be {'text': str} or {'structured': object}")
        return content

    def render(self) -> str:
        return self.content.render()


class ConsolidationDecision(BaseModel):
    """Transient verdict for one candidate; never persisted."""

    action: ConsolidationAction
    candidate: MemoryRecord
    conflicting_record_id: str | None = None
    conflicting_category: str | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def _conflict_needs_target(self) -> "ConsolidationDecision":
        if self.action == ConsolidationAction.CONFLICT and not self.conflicting_record_id:
            raise ValueError("conflict decisions must reference an existing record")
        return self


# ── Service (tenant) configuration ─────────────────────────────────


class SchemaField(BaseModel):
    """One field of a declarative schema."""

    id: str | None = None
    name: str
    type: FieldType
    required: bool = False
    description: str | None = None


class LongTermBucket(BaseModel):
    """A tenant-defined long-term memory category."""

    id: str | None = None
    name: str
    description: str = ""
    is_unstructured: bool = False
    schema_fields: list[SchemaField] = Field(default_factory=list, alias="schema")

    model_config = ConfigDict(populate_by_name=True)


class ServiceSchemas(BaseModel):
    short_term_fields: list[SchemaField] = Field(default_factory=list)
    long_term_buckets: list[LongTermBucket] = Field(default_factory=list)


class ServiceConfig(BaseModel):
    """Per-tenant configuration held in the global store."""

    id: str
    name: str
    store_url: str | None = None
    service_type: ServiceType = ServiceType.FIXED
    agent_purpose: str = ""
    memory_goals: list[str] = Field(default_factory=list)
    memory_categories: list[str] = Field(default_factory=list)
    schemas: ServiceSchemas = Field(default_factory=ServiceSchemas)
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)

    def bucket(self, name: str) -> LongTermBucket | None:
        for bucket in self.schemas.long_term_buckets:
            if bucket.name == name:
                return bucket
        return None

    def bucket_names(self) -> list[str]:
        return [b.name for b in self.schemas.long_term_buckets]
