"""Extraction cycle: transcript -> candidates -> consolidation -> long-term writes."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..consolidation.applier import DecisionApplier
from ..consolidation.consolidator import MemoryConsolidator
from ..core.enums import ConflictStrategy, ConsolidationAction, CycleStatus
from ..core.exceptions import ExtractionError
from ..core.schemas import MemoryRecord
from ..memory.long_term import LongTermMemoryStore
from ..memory.short_term import DEFAULT_SESSION_TTL_SECONDS, TranscriptStore
from ..storage.router import TenantStoreRouter
from ..utils.logging_config import get_logger
from ..utils.metrics import EXTRACTION_CYCLES, track_cycle_duration
from .memory_extractor import MemoryExtractor
from .registry import CategoryRegistry, category_registry

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExtractionJob:
    """One unit of detached work: extract memory for a user from a session."""

    service_id: str
    session_id: str
    user_id: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ExtractionCycleReport:
    """Outcome of one extraction cycle."""

    service_id: str
    session_id: str
    user_id: str
    started_at: datetime
    completed_at: datetime | None = None

    status: CycleStatus = CycleStatus.COMPLETED
    turns_read: int = 0
    candidates: int = 0
    added: int = 0
    skipped: int = 0
    conflicts: int = 0
    apply_failures: int = 0
    snapshot_failures: list[str] = field(default_factory=list)
    error: str | None = None

    elapsed_seconds: float = 0.0

    @property
    def success(self) -> bool:
        return self.status not in (CycleStatus.EXTRACTION_FAILED, CycleStatus.FAILED)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["started_at"] = self.started_at.isoformat()
        data["completed_at"] = self.completed_at.isoformat() if self.completed_at else None
        data["success"] = self.success
        return data


class ExtractionPipeline:
    """
    Runs extraction cycles against tenant stores.

    Steps, in order: read the full transcript, extract candidates for the
    tenant's enabled categories, snapshot the user's existing records for
    those categories, consolidate, then apply each decision. ``run_cycle``
    never raises; failures end up in the returned report and the log.
    """

    def __init__(
        self,
        router: TenantStoreRouter,
        extractor: MemoryExtractor,
        consolidator: MemoryConsolidator,
        registry: CategoryRegistry | None = None,
        conflict_strategy: ConflictStrategy = ConflictStrategy.FAITHFUL,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
    ) -> None:
        self.router = router
        self.extractor = extractor
        self.consolidator = consolidator
        self.registry = registry or category_registry
        self.conflict_strategy = conflict_strategy
        self.session_ttl_seconds = session_ttl_seconds

    async def run_cycle(self, job: ExtractionJob) -> ExtractionCycleReport:
        report = ExtractionCycleReport(
            service_id=job.service_id,
            session_id=job.session_id,
            user_id=job.user_id,
            started_at=datetime.now(UTC),
        )
        start = time.perf_counter()
        with track_cycle_duration():
            try:
                await self._run(job, report)
            except ExtractionError as e:
                report.status = CycleStatus.EXTRACTION_FAILED
                report.error = str(e)
                logger.warning("extraction_failed", **job.to_dict(), error=str(e))
            except Exception as e:
                report.status = CycleStatus.FAILED
                report.error = str(e)
                logger.exception("extraction_cycle_failed", **job.to_dict())

        report.completed_at = datetime.now(UTC)
        report.elapsed_seconds = time.perf_counter() - start
        EXTRACTION_CYCLES.labels(status=report.status.value).inc()
        logger.info(
            "extraction_cycle_finished",
            **job.to_dict(),
            status=report.status.value,
            candidates=report.candidates,
            added=report.added,
            skipped=report.skipped,
            conflicts=report.conflicts,
            apply_failures=report.apply_failures,
            elapsed_seconds=round(report.elapsed_seconds, 3),
        )
        return report

    async def _run(self, job: ExtractionJob, report: ExtractionCycleReport) -> None:
        config, store = await self.router.resolve(job.service_id)
        categories = self.registry.resolve(config)
        transcripts = TranscriptStore(store, ttl_seconds=self.session_ttl_seconds)
        long_term = LongTermMemoryStore(store)

        transcript = await transcripts.get_transcript(job.service_id, job.session_id)
        report.turns_read = len(transcript)
        if not transcript:
            report.status = CycleStatus.EMPTY_TRANSCRIPT
            return

        candidates = await self.extractor.extract(transcript, categories, job.user_id)
        report.candidates = len(candidates)
        if not candidates:
            report.status = CycleStatus.NO_CANDIDATES
            return

        existing = await self._snapshot(job, long_term, [c.name for c in categories], report)
        decisions = await self.consolidator.consolidate(candidates, existing)

        applier = DecisionApplier(long_term, strategy=self.conflict_strategy)
        for decision in decisions:
            try:
                await applier.apply(job.service_id, decision)
            except Exception as e:
                report.apply_failures += 1
                logger.error(
                    "decision_apply_failed",
                    **job.to_dict(),
                    action=decision.action.value,
                    category=decision.candidate.category,
                    error=str(e),
                )
                continue
            if decision.action == ConsolidationAction.ADD:
                report.added += 1
            elif decision.action == ConsolidationAction.SKIP:
                report.skipped += 1
            else:
                report.conflicts += 1

    async def _snapshot(
        self,
        job: ExtractionJob,
        long_term: LongTermMemoryStore,
        category_names: list[str],
        report: ExtractionCycleReport,
    ) -> list[MemoryRecord]:
        """Existing records across enabled categories; an unreadable category counts as empty."""
        existing: list[MemoryRecord] = []
        for name in category_names:
            try:
                existing.extend(await long_term.list_records(job.service_id, job.user_id, name))
            except Exception as e:
                report.snapshot_failures.append(name)
                logger.warning(
                    "memory_snapshot_read_failed",
                    **job.to_dict(),
                    category=name,
                    error=str(e),
                )
        return existing
