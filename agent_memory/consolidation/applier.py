"""Apply consolidation decisions to the long-term store."""

from __future__ import annotations

import structlog

from ..core.enums import ConflictStrategy, ConsolidationAction
from ..core.schemas import ConsolidationDecision
from ..memory.long_term import LongTermMemoryStore
from ..utils.metrics import LONG_TERM_WRITES

logger = structlog.get_logger(__name__)


class DecisionApplier:
    """
    Executes one decision at a time against a tenant's long-term store.

    - add: append the candidate to its category list.
    - conflict: rewrite the conflicting record's category list without that
      record, then append the candidate to its own category list.
    - skip: nothing.

    With ``ConflictStrategy.FAITHFUL`` the conflict rewrite is an unlocked
    read-modify-write, so an append from another cycle that lands between the
    read and the rewrite is lost. ``ConflictStrategy.LOCKED`` takes the
    per-list lock for every write, appends included; a same-category conflict
    holds it across both the rewrite and the append.
    """

    def __init__(
        self,
        store: LongTermMemoryStore,
        strategy: ConflictStrategy = ConflictStrategy.FAITHFUL,
    ) -> None:
        self.store = store
        self.strategy = strategy

    async def apply(self, service_id: str, decision: ConsolidationDecision) -> None:
        if decision.action == ConsolidationAction.SKIP:
            logger.debug(
                "decision_skipped",
                service_id=service_id,
                category=decision.candidate.category,
                reason=decision.reason,
            )
            return

        if self.strategy == ConflictStrategy.LOCKED:
            await self._apply_locked(service_id, decision)
        else:
            if decision.action == ConsolidationAction.CONFLICT:
                await self._remove_conflicting(service_id, decision)
            await self.store.append_record(service_id, decision.candidate)
        LONG_TERM_WRITES.labels(origin="extraction").inc()

    async def _apply_locked(self, service_id: str, decision: ConsolidationDecision) -> None:
        candidate = decision.candidate
        target = None
        if decision.action == ConsolidationAction.CONFLICT:
            target = _target_category(decision)

        # Locks are taken one at a time; asyncio and Redis locks are not reentrant.
        if target is not None and target != candidate.category:
            async with self.store.lock(service_id, candidate.user_id, target):
                await self._remove_conflicting(service_id, decision)
        async with self.store.lock(service_id, candidate.user_id, candidate.category):
            if target == candidate.category:
                await self._remove_conflicting(service_id, decision)
            await self.store.append_record(service_id, candidate)

    async def _remove_conflicting(self, service_id: str, decision: ConsolidationDecision) -> None:
        category = _target_category(decision)
        removed = await self.store.remove_record(
            service_id,
            decision.candidate.user_id,
            category,
            decision.conflicting_record_id,
        )
        if not removed:
            logger.info(
                "conflicting_record_missing",
                service_id=service_id,
                category=category,
                record_id=decision.conflicting_record_id,
            )
            return
        logger.info(
            "conflicting_record_replaced",
            service_id=service_id,
            category=category,
            record_id=decision.conflicting_record_id,
            replaced_by=decision.candidate.record_id,
            reason=decision.reason,
        )


def _target_category(decision: ConsolidationDecision) -> str:
    return decision.conflicting_category or decision.candidate.category
