"""Core enums for roles, categories, decisions, and runtime strategies."""

from enum import Enum


class Role(str, Enum):
    """Speaker of a transcript turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    @classmethod
    def normalize(cls, value: "str | Role") -> "Role":
        """Map legacy and upper-case role names onto the canonical roles."""
        if isinstance(value, Role):
            return value
        lowered = str(value).strip().lower()
        if lowered == "agent":
            return cls.ASSISTANT
        return cls(lowered)


class BuiltinCategory(str, Enum):
    """Memory categories available to every tenant."""

    PREFERENCES = "preferences"  # Explicitly stated likes/dislikes
    FACTS = "facts"  # Facts about the user or their situation
    SUMMARY = "summary"  # One summary per extraction
    EPISODES = "episodes"  # Completed interactions with an outcome


class ConsolidationAction(str, Enum):
    """Outcome of reconciling a candidate against existing memory."""

    ADD = "add"
    SKIP = "skip"
    CONFLICT = "conflict"


class ConflictStrategy(str, Enum):
    """How a conflict decision rewrites the category list."""

    FAITHFUL = "faithful"  # Unlocked read-modify-write; concurrent cycles can lose updates
    LOCKED = "locked"  # Read-modify-write under a per-list lock


class DispatcherType(str, Enum):
    """Where detached extraction cycles run."""

    LOCAL = "local"  # In-process asyncio worker pool
    CELERY = "celery"  # Celery worker via Redis broker


class FieldType(str, Enum):
    """Declarative field types understood by the schema validator."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class ServiceType(str, Enum):
    """Tenant flavor: fixed built-in categories or user-defined buckets."""

    FIXED = "fixed"
    CUSTOM = "custom"


class CycleStatus(str, Enum):
    """Terminal status of one extraction cycle."""

    COMPLETED = "completed"
    EMPTY_TRANSCRIPT = "empty_transcript"
    NO_CANDIDATES = "no_candidates"
    EXTRACTION_FAILED = "extraction_failed"
    FAILED = "failed"
