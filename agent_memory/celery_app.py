"""Celery application and background tasks (detached extraction cycles)."""

import asyncio
import threading
from typing import Any

from celery import Celery

from .core.config import get_settings


def _make_celery() -> Celery:
    settings = get_settings()
    return Celery(
        "agent_memory",
        broker=settings.database.redis_url,
        backend=settings.database.redis_url,
        include=["agent_memory.celery_app"],
    )


app = _make_celery()
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # No redelivery: extraction is best effort.
    task_acks_late=False,
)
app.conf.task_routes = {
    "agent_memory.celery_app.run_extraction_task": {"queue": "extraction"},
}

# --- Persistent event loop per worker thread ---
_thread_local = threading.local()


def _get_or_create_event_loop() -> asyncio.AbstractEventLoop:
    """Return a persistent event loop for this worker thread."""
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _thread_local.loop = loop
    return loop


def _run_async(coro):
    """Run an async coroutine on the persistent per-thread event loop."""
    loop = _get_or_create_event_loop()
    return loop.run_until_complete(coro)


def _get_pipeline():
    """Build the extraction pipeline once per worker thread so store handles bind to its loop."""
    pipeline = getattr(_thread_local, "pipeline", None)
    if pipeline is None:
        from .core.enums import DispatcherType
        from .memory.orchestrator import MemoryOrchestrator
        from .utils.logging_config import configure_logging

        settings = get_settings()
        configure_logging(settings.logging.level, settings.logging.json_output)
        # The worker runs cycles itself; it never re-dispatches.
        orchestrator = MemoryOrchestrator.create(settings, dispatcher_type=DispatcherType.LOCAL)
        pipeline = orchestrator.pipeline
        _thread_local.pipeline = pipeline
    return pipeline


@app.task(name="agent_memory.celery_app.run_extraction_task", bind=True)
def run_extraction_task(
    self: Any,
    service_id: str,
    session_id: str,
    user_id: str,
) -> dict[str, Any]:
    """
    Celery task: run one extraction cycle for a session.
    The cycle never raises; its report is the task result.
    """
    from .extraction.pipeline import ExtractionJob

    job = ExtractionJob(service_id=service_id, session_id=session_id, user_id=user_id)

    async def _run() -> dict[str, Any]:
        report = await _get_pipeline().run_cycle(job)
        return report.to_dict()

    return _run_async(_run())
