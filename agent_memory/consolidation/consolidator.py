"""Consolidation: reconcile candidate records against a user's existing memory.

One LLM call decides, per candidate, whether to add it, skip it as a
duplicate, or replace a contradicted existing record (recency wins). Any
failure of that call degrades to adding every candidate.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

import structlog

from ..core.enums import ConsolidationAction
from ..core.schemas import ConsolidationDecision, MemoryRecord
from ..utils.llm import LLMClient
from ..utils.metrics import CONSOLIDATION_DECISIONS, CONSOLIDATION_FAIL_OPEN

logger = structlog.get_logger(__name__)

DEFAULT_CONSOLIDATION_TEMPERATURE = 0.1
DEFAULT_SKIP_REASON = "duplicate of existing memory"

# Keys a JSON-object response may wrap the decision array in, in lookup order.
_WRAPPER_KEYS = ("decisions", "results")

_SYSTEM_PROMPT = "You are a memory consolidation system. Analyze memories and return valid JSON only."

_CONSOLIDATION_PROMPT = """Compare NEW memories against EXISTING memories and decide the action for each new memory.

EXISTING MEMORIES:
{existing}

NEW MEMORIES TO CONSOLIDATE:
{candidates}

For each NEW memory, choose:
- "add": new information not present in existing memories
- "skip": the same information already exists (give a reason)
- "conflict": contradicts an existing memory; the old one is deleted and the new one added because recency wins (give existingIndex and a reason)

CONFLICT EXAMPLES:
- "prefers window seats" vs "prefers aisle seats" -> conflict (preference changed)
- "works at Acme Corp" vs "works at Beta Inc" -> conflict (job changed)
- "has 2 kids" vs "has 3 kids" -> conflict (information updated)

NOT CONFLICTS (both can coexist, so add):
- "likes pizza" and "likes sushi"
- "works at Acme Corp" and "lives in NYC"

Return a JSON object with one decision per new memory:
{{"decisions": [
  {{"newIndex": 0, "action": "add"}},
  {{"newIndex": 1, "action": "skip", "reason": "duplicate of existing"}},
  {{"newIndex": 2, "action": "conflict", "existingIndex": 3, "reason": "preference changed"}}
]}}"""


def _context(records: Sequence[MemoryRecord]) -> str:
    rows = [
        {"index": i, "category": r.category, "content": r.render()} for i, r in enumerate(records)
    ]
    return json.dumps(rows, indent=2, ensure_ascii=False)


def build_consolidation_prompt(
    candidates: Sequence[MemoryRecord],
    existing: Sequence[MemoryRecord],
) -> str:
    return _CONSOLIDATION_PROMPT.format(existing=_context(existing), candidates=_context(candidates))


def _as_index(value: Any, size: int) -> int | None:
    """Return ``value`` if it is an in-range integer index (bools rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    if 0 <= value < size:
        return value
    return None


def _decision_array(parsed: Any) -> list[Any] | None:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict):
        for key in _WRAPPER_KEYS:
            value = parsed.get(key)
            if isinstance(value, list):
                return value
    return None


def add_all(candidates: Sequence[MemoryRecord]) -> list[ConsolidationDecision]:
    return [ConsolidationDecision(action=ConsolidationAction.ADD, candidate=c) for c in candidates]


class MemoryConsolidator:
    """Single LLM call mapping each candidate to add / skip / conflict."""

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float = DEFAULT_CONSOLIDATION_TEMPERATURE,
    ) -> None:
        self._llm = llm_client
        self.temperature = temperature

    async def consolidate(
        self,
        candidates: Sequence[MemoryRecord],
        existing: Sequence[MemoryRecord],
    ) -> list[ConsolidationDecision]:
        """Decide per candidate. Never raises for model or output failures."""
        if not candidates:
            return []
        if not existing:
            decisions = add_all(candidates)
            self._count(decisions)
            return decisions

        prompt = build_consolidation_prompt(candidates, existing)
        try:
            parsed = await self._llm.complete_json(
                prompt,
                temperature=self.temperature,
                system_prompt=_SYSTEM_PROMPT,
            )
        except ValueError as e:
            return self._fail_open(candidates, "unparseable", e)
        except Exception as e:
            return self._fail_open(candidates, "model_error", e)

        items = _decision_array(parsed)
        if items is None:
            return self._fail_open(candidates, "no_decisions", None)

        decisions = self._parse_decisions(items, candidates, existing)
        self._count(decisions)
        return decisions

    def _parse_decisions(
        self,
        items: list[Any],
        candidates: Sequence[MemoryRecord],
        existing: Sequence[MemoryRecord],
    ) -> list[ConsolidationDecision]:
        """Filter raw items into at most one decision per candidate, in candidate order."""
        by_index: dict[int, ConsolidationDecision] = {}
        dropped = 0
        for item in items:
            if not isinstance(item, dict):
                dropped += 1
                continue
            new_index = _as_index(item.get("newIndex"), len(candidates))
            if new_index is None or new_index in by_index:
                dropped += 1
                continue
            try:
                action = ConsolidationAction(item.get("action"))
            except ValueError:
                dropped += 1
                continue

            reason = item.get("reason")
            reason = reason if isinstance(reason, str) and reason.strip() else None
            candidate = candidates[new_index]

            if action == ConsolidationAction.ADD:
                decision = ConsolidationDecision(action=action, candidate=candidate, reason=reason)
            elif action == ConsolidationAction.SKIP:
                decision = ConsolidationDecision(
                    action=action, candidate=candidate, reason=reason or DEFAULT_SKIP_REASON
                )
            else:
                existing_index = _as_index(item.get("existingIndex"), len(existing))
                if existing_index is None:
                    dropped += 1
                    continue
                target = existing[existing_index]
                decision = ConsolidationDecision(
                    action=action,
                    candidate=candidate,
                    conflicting_record_id=target.record_id,
                    conflicting_category=target.category,
                    reason=reason,
                )
            by_index[new_index] = decision

        if dropped or len(by_index) < len(candidates):
            logger.info(
                "consolidation_output_filtered",
                dropped_items=dropped,
                candidates=len(candidates),
                decisions=len(by_index),
            )
        return [by_index[i] for i in sorted(by_index)]

    def _fail_open(
        self,
        candidates: Sequence[MemoryRecord],
        reason: str,
        error: Exception | None,
    ) -> list[ConsolidationDecision]:
        logger.warning(
            "consolidation_fail_open",
            reason=reason,
            candidates=len(candidates),
            error=str(error) if error else None,
        )
        CONSOLIDATION_FAIL_OPEN.labels(reason=reason).inc()
        decisions = add_all(candidates)
        self._count(decisions)
        return decisions

    @staticmethod
    def _count(decisions: Sequence[ConsolidationDecision]) -> None:
        for decision in decisions:
            CONSOLIDATION_DECISIONS.labels(action=decision.action.value).inc()
