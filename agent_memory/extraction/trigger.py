"""Extraction trigger: decide after each append whether to schedule a cycle."""

from __future__ import annotations

from ..core.schemas import ServiceConfig, TranscriptTurn
from ..utils.logging_config import get_logger
from .pipeline import ExtractionJob
from .registry import CategoryRegistry, category_registry
from .worker import ExtractionDispatcher

logger = get_logger(__name__)


class ExtractionTrigger:
    """
    Fire-and-forget hook called by ingestion right after a turn is appended.

    A job is submitted only when the tenant enables at least one category, a
    model credential is configured, and the turn carries a user id. Anything
    else is a silent no-op. Nothing here ever raises into the ingestion path.
    """

    def __init__(
        self,
        dispatcher: ExtractionDispatcher,
        has_credential: bool,
        enabled: bool = True,
        registry: CategoryRegistry | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.has_credential = has_credential
        self.enabled = enabled
        self.registry = registry or category_registry

    def maybe_trigger(self, service_config: ServiceConfig, turn: TranscriptTurn) -> bool:
        """Return True if an extraction job was submitted."""
        skip_reason = self._skip_reason(service_config, turn)
        if skip_reason is not None:
            logger.debug(
                "extraction_trigger_skipped",
                reason=skip_reason,
                service_id=service_config.id,
                session_id=turn.session_id,
            )
            return False

        job = ExtractionJob(
            service_id=service_config.id,
            session_id=turn.session_id,
            user_id=turn.user_id,
        )
        try:
            submitted = self.dispatcher.submit(job)
        except Exception as e:
            logger.warning("extraction_trigger_submit_failed", error=str(e), **job.to_dict())
            return False
        if submitted:
            logger.debug("extraction_scheduled", **job.to_dict())
        return submitted

    def _skip_reason(self, service_config: ServiceConfig, turn: TranscriptTurn) -> str | None:
        if not self.enabled:
            return "disabled"
        if not self.registry.resolve(service_config):
            return "no_categories"
        if not self.has_credential:
            return "no_credential"
        if not turn.user_id.strip():
            return "no_user_id"
        return None
