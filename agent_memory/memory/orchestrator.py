"""Memory orchestrator: the single entry point used by the API and workers."""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..consolidation.consolidator import MemoryConsolidator
from ..core.config import Settings
from ..core.enums import DispatcherType
from ..core.exceptions import CategoryNotFoundError, SchemaValidationError, ValidationError
from ..core.schemas import (
    MemoryRecord,
    ServiceConfig,
    Session,
    StructuredContent,
    TextContent,
    TranscriptTurn,
)
from ..core.validation import FieldError, validate_against_schema
from ..extraction.memory_extractor import MemoryExtractor
from ..extraction.pipeline import ExtractionCycleReport, ExtractionJob, ExtractionPipeline
from ..extraction.registry import CategoryRegistry, category_registry
from ..extraction.trigger import ExtractionTrigger
from ..extraction.worker import CeleryDispatcher, ExtractionDispatcher, ExtractionWorkerPool
from ..storage.base import KeyValueStore
from ..storage.router import StoreFactory, TenantStoreRouter
from ..utils.llm import LLMClient, get_llm_client
from ..utils.logging_config import get_logger
from ..utils.metrics import LONG_TERM_WRITES
from .long_term import LongTermMemoryStore
from .services import ServiceRegistry
from .short_term import DEFAULT_SESSION_TTL_SECONDS, TranscriptStore

logger = get_logger(__name__)

_TURN_FIELDS = frozenset({"user_id", "session_id", "role", "text", "timestamp", "metadata"})


def turn_from_payload(data: dict[str, Any]) -> TranscriptTurn:
    """Build a turn from a client payload; keys outside the turn shape go to metadata."""
    extra = {k: v for k, v in data.items() if k not in _TURN_FIELDS}
    fields = {k: v for k, v in data.items() if k in _TURN_FIELDS and v is not None}
    if extra:
        fields["metadata"] = {**(fields.get("metadata") or {}), **extra}
    try:
        return TranscriptTurn.model_validate(fields)
    except (PydanticValidationError, ValueError) as e:
        raise ValidationError(f"Invalid transcript turn: {e}") from e


class MemoryOrchestrator:
    """
    Coordinates tenant routing, transcripts, long-term memory, and extraction.

    Components are passed in explicitly; ``create`` wires them from settings.
    """

    def __init__(
        self,
        services: ServiceRegistry,
        router: TenantStoreRouter,
        pipeline: ExtractionPipeline,
        trigger: ExtractionTrigger,
        dispatcher: ExtractionDispatcher,
        global_store: KeyValueStore,
        registry: CategoryRegistry | None = None,
        session_ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
    ) -> None:
        self.services = services
        self.router = router
        self.pipeline = pipeline
        self.trigger = trigger
        self.dispatcher = dispatcher
        self.global_store = global_store
        self.registry = registry or category_registry
        self.session_ttl_seconds = session_ttl_seconds

    @classmethod
    def create(
        cls,
        settings: Settings,
        llm_client: LLMClient | None = None,
        factory: StoreFactory | None = None,
        dispatcher_type: DispatcherType | None = None,
    ) -> MemoryOrchestrator:
        """Factory method to create the orchestrator with all dependencies."""
        factory = factory or StoreFactory()
        global_store = factory.create(settings.database.redis_url)
        services = ServiceRegistry(global_store)
        router = TenantStoreRouter(services, factory=factory)
        llm = llm_client or get_llm_client(settings.llm)

        extraction = settings.extraction
        pipeline = ExtractionPipeline(
            router=router,
            extractor=MemoryExtractor(llm, temperature=settings.llm.extraction_temperature),
            consolidator=MemoryConsolidator(llm, temperature=settings.llm.consolidation_temperature),
            conflict_strategy=extraction.conflict_strategy,
            session_ttl_seconds=extraction.session_ttl_seconds,
        )

        dispatcher: ExtractionDispatcher
        if (dispatcher_type or extraction.dispatcher) == DispatcherType.CELERY:
            dispatcher = CeleryDispatcher()
        else:
            dispatcher = ExtractionWorkerPool(
                pipeline,
                concurrency=extraction.concurrency,
                queue_size=extraction.queue_size,
                shutdown_grace_seconds=extraction.shutdown_grace_seconds,
            )
        trigger = ExtractionTrigger(
            dispatcher,
            has_credential=llm_client is not None or settings.llm.has_credential(),
            enabled=extraction.enabled,
        )
        return cls(
            services=services,
            router=router,
            pipeline=pipeline,
            trigger=trigger,
            dispatcher=dispatcher,
            global_store=global_store,
            session_ttl_seconds=extraction.session_ttl_seconds,
        )

    async def start(self) -> None:
        await self.dispatcher.start()

    async def close(self) -> None:
        await self.dispatcher.stop()
        await self.router.close()
        await self.global_store.close()

    # ── Short-term memory ──

    async def store_short_term(self, service_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Append one turn and maybe schedule extraction. Extraction never delays or fails this call."""
        config, store = await self.router.resolve(service_id)
        if config.schemas.short_term_fields:
            errors = validate_against_schema(data, config.schemas.short_term_fields)
            if errors:
                raise SchemaValidationError(errors)

        turn = turn_from_payload(data)
        await TranscriptStore(store, ttl_seconds=self.session_ttl_seconds).append_turn(service_id, turn)

        scheduled = self.trigger.maybe_trigger(config, turn)
        return {
            "session_id": turn.session_id,
            "stored_at": turn.timestamp,
            "extraction_scheduled": scheduled,
        }

    async def read_short_term(
        self,
        service_id: str,
        session_id: str,
        limit: int | None = None,
    ) -> Session:
        _, store = await self.router.resolve(service_id)
        transcripts = TranscriptStore(store, ttl_seconds=self.session_ttl_seconds)
        return await transcripts.get_session(service_id, session_id, limit=limit)

    # ── Long-term memory ──

    async def store_long_term(
        self,
        service_id: str,
        user_id: str,
        bucket_name: str,
        data: dict[str, Any],
    ) -> MemoryRecord:
        """Write one record to a tenant bucket after validating it against the bucket schema."""
        config, store = await self.router.resolve(service_id)
        bucket = config.bucket(bucket_name)
        if bucket is None:
            raise CategoryNotFoundError(bucket_name)

        if bucket.is_unstructured:
            text = data.get("text")
            if not isinstance(text, str) or not text.strip():
                raise SchemaValidationError(
                    [
                        FieldError(
                            field="text",
                            message="Unstructured buckets require a non-empty text field",
                            expected="string",
                        )
                    ]
                )
            content: TextContent | StructuredContent = TextContent(text=text)
        else:
            errors = validate_against_schema(data, bucket.schema_fields)
            if errors:
                raise SchemaValidationError(errors)
            content = StructuredContent(structured=data)

        record = MemoryRecord(category=bucket_name, user_id=user_id, content=content)
        await LongTermMemoryStore(store).append_record(service_id, record)
        LONG_TERM_WRITES.labels(origin="manual").inc()
        logger.info(
            "long_term_stored",
            service_id=service_id,
            category=bucket_name,
            record_id=record.record_id,
        )
        return record

    def readable_categories(self, config: ServiceConfig) -> list[str]:
        """Every enabled category followed by every bucket, without duplicates."""
        names = [d.name for d in self.registry.resolve(config)]
        for name in config.bucket_names():
            if name not in names:
                names.append(name)
        return names

    async def read_long_term(
        self,
        service_id: str,
        user_id: str,
        category: str | None = None,
    ) -> dict[str, list[MemoryRecord]]:
        config, store = await self.router.resolve(service_id)
        long_term = LongTermMemoryStore(store)
        if category is not None:
            return {category: await long_term.list_records(service_id, user_id, category)}
        return await long_term.list_all(service_id, user_id, self.readable_categories(config))

    # ── Extraction ──

    async def run_extraction(self, service_id: str, session_id: str, user_id: str) -> ExtractionCycleReport:
        """Run one extraction cycle inline and return its report."""
        await self.services.get(service_id)
        return await self.pipeline.run_cycle(
            ExtractionJob(service_id=service_id, session_id=session_id, user_id=user_id)
        )
