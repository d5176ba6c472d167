"""LLM memory extractor: transcript -> candidate long-term records in one call.

Only the categories enabled for the tenant are described to the model, and the
response is a JSON object keyed by category name.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from ..core.enums import Role
from ..core.exceptions import ExtractionError
from ..core.schemas import MemoryRecord, TranscriptTurn, content_from_wire
from ..utils.llm import LLMClient
from ..utils.metrics import EXTRACTION_CANDIDATES
from .registry import CategoryDefinition

logger = structlog.get_logger(__name__)

DEFAULT_EXTRACTION_TEMPERATURE = 0.2

# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

_SYSTEM_PROMPT = """You are a memory extraction system for an AI agent. Analyze conversations and extract information from USER messages that should be remembered for future interactions.

RULES:
1. ONLY extract information from USER messages. Assistant and tool messages provide context only.
2. Only extract what the user EXPLICITLY states, never what you infer.
3. Do NOT extract trivial or transient information (greetings, "user asked a question").
4. Each memory must be useful in a future conversation.
5. Be conservative: when in doubt, leave it out.
6. Return an empty array for every category with nothing meaningful to extract.
7. Return valid JSON only."""

_USER_PROMPT = """Analyze this conversation and extract memories from USER messages into the following categories:

{category_blocks}

---
CONVERSATION:
{conversation}
---

Return a JSON object with this structure:
{{
{shape}
}}

For each item, use either:
- {{ "text": "simple text description" }} for simple facts
- {{ "structured": {{ ... }} }} for complex or structured data

Be selective. Only extract information that will help in future conversations."""

_ROLE_LABELS = {
    Role.USER: "User",
    Role.ASSISTANT: "Assistant",
    Role.TOOL: "Tool",
}


def render_transcript(transcript: Sequence[TranscriptTurn]) -> str:
    return "\n".join(f"{_ROLE_LABELS[turn.role]}: {turn.text}" for turn in transcript)


def _category_block(definition: CategoryDefinition) -> str:
    lines = [
        f"## {definition.name}",
        f"Description: {definition.description}",
        "",
        "Guidance:",
        definition.guidance,
    ]
    if definition.examples:
        lines.extend(["", "Examples:"])
        lines.extend(f"  - {example}" for example in definition.examples)
    return "\n".join(lines)


def build_extraction_prompt(
    transcript: Sequence[TranscriptTurn],
    categories: Sequence[CategoryDefinition],
) -> str:
    return _USER_PROMPT.format(
        category_blocks="\n\n".join(_category_block(c) for c in categories),
        conversation=render_transcript(transcript),
        shape=",\n".join(f'  "{c.name}": []' for c in categories),
    )


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class MemoryExtractor:
    """Single LLM call that turns a transcript into candidate records."""

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = DEFAULT_EXTRACTION_TEMPERATURE,
    ) -> None:
        self._llm = llm_client
        self.temperature = temperature

    async def extract(
        self,
        transcript: Sequence[TranscriptTurn],
        categories: Sequence[CategoryDefinition],
        user_id: str,
    ) -> list[MemoryRecord]:
        """Return candidate records, or raise ExtractionError.

        No model call is made for an empty transcript or an empty category list.
        """
        if not transcript or not categories:
            return []

        prompt = build_extraction_prompt(transcript, categories)
        try:
            raw = await self._llm.complete_json(
                prompt,
                temperature=self.temperature,
                system_prompt=_SYSTEM_PROMPT,
            )
        except ValueError as e:
            raise ExtractionError(f"Extraction response is not valid JSON: {e}") from e
        except Exception as e:
            raise ExtractionError(f"Extraction model call failed: {e}") from e

        if not isinstance(raw, dict):
            raise ExtractionError(
                f"Extraction response must be a JSON object, got {type(raw).__name__}"
            )
        return self._parse_result(raw, categories, user_id)

    def _parse_result(
        self,
        data: dict[str, Any],
        categories: Sequence[CategoryDefinition],
        user_id: str,
    ) -> list[MemoryRecord]:
        """Build records for enabled categories only; unusable items are dropped."""
        records: list[MemoryRecord] = []
        dropped = 0
        for definition in categories:
            items = data.get(definition.name)
            if not isinstance(items, list):
                continue
            for item in items:
                content = content_from_wire(item)
                if content is None:
                    dropped += 1
                    continue
                records.append(
                    MemoryRecord(category=definition.name, user_id=user_id, content=content)
                )
                EXTRACTION_CANDIDATES.labels(category=definition.name).inc()

        unknown = sorted(set(data) - {c.name for c in categories})
        if dropped or unknown:
            logger.debug(
                "extraction_output_filtered",
                dropped_items=dropped,
                ignored_categories=unknown,
            )
        return records
