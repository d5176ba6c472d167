"""Memory category registry.

Built-in categories are registered at import time. A tenant enables categories
by name in ``ServiceConfig.memory_categories``; names that match one of the
tenant's long-term buckets resolve to a definition derived from the bucket.

Usage:
    from agent_memory.extraction.registry import category_registry

    categories = category_registry.resolve(service_config)
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

import structlog

from ..core.enums import BuiltinCategory
from ..core.schemas import LongTermBucket, ServiceConfig

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CategoryDefinition:
    """What the extraction prompt says about one category."""

    name: str
    description: str
    guidance: str
    examples: tuple[str, ...] = field(default_factory=tuple)


_BUILTIN_DEFINITIONS = (
    CategoryDefinition(
        name=BuiltinCategory.PREFERENCES.value,
        description=(
            "Explicit preferences, choices, likes, dislikes, and interaction styles "
            "expressed by the USER"
        ),
        guidance="""Extract ONLY when the USER explicitly states a preference. Look for phrases like:
  - "I prefer...", "I like...", "I don't like...", "I want...", "I always..."
  - "My favorite is...", "I usually...", "I'd rather..."
Only extract from USER messages. Assistant messages are context only.
Do NOT infer preferences from behavior.""",
        examples=(
            'User: "I prefer window seats" -> { "text": "prefers window seats when flying" }',
            'User: "I like spicy food" -> { "text": "likes spicy food" }',
            'User: "Please use dark mode" -> { "text": "prefers dark mode interface" }',
        ),
    ),
    CategoryDefinition(
        name=BuiltinCategory.FACTS.value,
        description="Facts, knowledge, and contextual information about the USER or their situation",
        guidance="""Extract factual information stated by the USER:
  - Personal facts: name, job, location, relationships
  - Context: order numbers, account IDs, project names
Only extract facts the USER states about themselves.
Do NOT include opinions or preferences here.""",
        examples=(
            'User: "I work at Acme Corp" -> { "text": "works at Acme Corp" }',
            'User: "My order number is #12345" -> { "structured": { "orderId": "#12345" } }',
            'User: "I have 2 kids" -> { "text": "has 2 children" }',
        ),
    ),
    CategoryDefinition(
        name=BuiltinCategory.SUMMARY.value,
        description="Condensed summary of what happened in this conversation session",
        guidance="""Create at most ONE brief summary capturing:
  - Main topic/purpose of the conversation
  - Key decisions or outcomes
  - Any unresolved issues
Keep it concise (1-2 sentences).""",
        examples=(
            '{ "text": "User asked about flights to Paris, picked a window seat on the morning '
            'flight, and completed the booking." }',
        ),
    ),
    CategoryDefinition(
        name=BuiltinCategory.EPISODES.value,
        description="Structured record of significant interactions with clear intent and outcome",
        guidance="""Only extract for COMPLETED interactions with clear outcomes. Structure as:
  - scenario: type of interaction (booking, support, inquiry, ...)
  - intent: what the user was trying to accomplish
  - actions: key steps taken (array)
  - outcome: success, failure, partial, or pending
Skip casual chat and conversations without a clear outcome.""",
        examples=(
            '{ "structured": { "scenario": "flight_booking", "intent": "book round-trip to Paris", '
            '"actions": ["searched flights", "selected window seat", "paid"], "outcome": "success" } }',
        ),
    ),
)


def definition_from_bucket(bucket: LongTermBucket) -> CategoryDefinition:
    """Describe a tenant bucket to the extraction model."""
    if bucket.is_unstructured or not bucket.schema_fields:
        guidance = 'Extract items as { "text": "..." }. Only what the USER explicitly states.'
    else:
        fields = ", ".join(
            f"{f.name} ({f.type.value}{', required' if f.required else ''})" for f in bucket.schema_fields
        )
        guidance = (
            'Extract items as { "structured": { ... } } using only these fields: '
            f"{fields}. Only what the USER explicitly states."
        )
    return CategoryDefinition(
        name=bucket.name,
        description=bucket.description or f"Tenant-defined memory bucket '{bucket.name}'",
        guidance=guidance,
    )


class CategoryRegistry:
    """Thread-safe registry of category definitions."""

    def __init__(self) -> None:
        self._definitions: dict[str, CategoryDefinition] = {}
        self._lock = threading.Lock()

    def register(self, definition: CategoryDefinition) -> CategoryDefinition:
        with self._lock:
            if definition.name in self._definitions:
                logger.warning("category_registry_overwrite", name=definition.name)
            self._definitions[definition.name] = definition
        return definition

    def get(self, name: str) -> CategoryDefinition | None:
        with self._lock:
            return self._definitions.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._definitions)

    def resolve(self, config: ServiceConfig) -> list[CategoryDefinition]:
        """Enabled categories for a tenant, in declaration order, without duplicates.

        Tenant buckets shadow registered definitions of the same name. Unknown
        names are skipped with a warning.
        """
        resolved: list[CategoryDefinition] = []
        seen: set[str] = set()
        for name in config.memory_categories:
            if name in seen:
                continue
            seen.add(name)
            bucket = config.bucket(name)
            definition = definition_from_bucket(bucket) if bucket else self.get(name)
            if definition is None:
                logger.warning("category_unknown", service_id=config.id, category=name)
                continue
            resolved.append(definition)
        return resolved


# Singleton instance holding the built-in categories
category_registry = CategoryRegistry()
for _definition in _BUILTIN_DEFINITIONS:
    category_registry.register(_definition)
