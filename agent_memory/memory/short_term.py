"""Transcript store: per-session conversation turns with an inactivity TTL."""

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..core.exceptions import SessionNotFoundError
from ..core.schemas import Session, SessionMetadata, TranscriptTurn
from ..storage.base import KeyValueStore
from ..storage.keys import RedisKeys
from ..utils.metrics import TRANSCRIPT_APPENDS

logger = structlog.get_logger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 86400


class TranscriptStore:
    """
    Append-only transcript per session.

    Every append refreshes the TTL of both the turn list and the session
    metadata, so a session expires as a whole after a period of inactivity.
    """

    def __init__(self, store: KeyValueStore, ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def append_turn(self, service_id: str, turn: TranscriptTurn) -> None:
        messages_key = RedisKeys.session_messages(service_id, turn.session_id)
        metadata_key = RedisKeys.session_metadata(service_id, turn.session_id)

        await self.store.append_record(messages_key, turn.model_dump(mode="json", exclude_none=True))
        await self.store.expire(messages_key, self.ttl_seconds)

        metadata = SessionMetadata(
            user_id=turn.user_id,
            service_id=service_id,
            last_activity=turn.timestamp,
        )
        await self.store.hset(metadata_key, metadata.model_dump(mode="json"))
        await self.store.expire(metadata_key, self.ttl_seconds)
        TRANSCRIPT_APPENDS.labels(service_id=service_id).inc()

    async def get_transcript(
        self,
        service_id: str,
        session_id: str,
        limit: int | None = None,
    ) -> list[TranscriptTurn]:
        """Ordered turns; malformed entries are skipped."""
        raw_turns = await self.store.list_records(
            RedisKeys.session_messages(service_id, session_id), limit=limit
        )
        turns = []
        for raw in raw_turns:
            try:
                turns.append(TranscriptTurn.model_validate(raw))
            except PydanticValidationError:
                logger.warning("transcript_entry_malformed", service_id=service_id, session_id=session_id)
        return turns

    async def get_session(
        self,
        service_id: str,
        session_id: str,
        limit: int | None = None,
    ) -> Session:
        raw_metadata = await self.store.hgetall(RedisKeys.session_metadata(service_id, session_id))
        if not raw_metadata:
            raise SessionNotFoundError(session_id)
        metadata = SessionMetadata(
            user_id=raw_metadata.get("user_id", ""),
            service_id=raw_metadata.get("service_id", service_id),
            last_activity=raw_metadata.get("last_activity", ""),
        )
        messages = await self.get_transcript(service_id, session_id, limit=limit)
        return Session(session_id=session_id, metadata=metadata, messages=messages)
