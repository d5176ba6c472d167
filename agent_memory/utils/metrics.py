"""Prometheus metrics for ingestion, extraction cycles, and consolidation."""

import time
from collections.abc import Iterator
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

# ── Ingestion ───────────────────────────────────────────────────────

TRANSCRIPT_APPENDS = Counter(
    "agent_memory_transcript_appends_total",
    "Transcript turns appended",
    ["service_id"],
)

LONG_TERM_WRITES = Counter(
    "agent_memory_long_term_writes_total",
    "Long-term records written, by origin",
    ["origin"],  # manual | extraction
)

# ── Extraction cycle ────────────────────────────────────────────────

EXTRACTION_CYCLES = Counter(
    "agent_memory_extraction_cycles_total",
    "Extraction cycles finished, by terminal status",
    ["status"],
)

EXTRACTION_CANDIDATES = Counter(
    "agent_memory_extraction_candidates_total",
    "Candidate records produced by the extraction model",
    ["category"],
)

EXTRACTION_CYCLE_DURATION = Histogram(
    "agent_memory_extraction_cycle_duration_seconds",
    "Wall time of one extraction cycle",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# ── Consolidation ───────────────────────────────────────────────────

CONSOLIDATION_DECISIONS = Counter(
    "agent_memory_consolidation_decisions_total",
    "Consolidation decisions, by action",
    ["action"],
)

CONSOLIDATION_FAIL_OPEN = Counter(
    "agent_memory_consolidation_fail_open_total",
    "Consolidation calls that degraded to add-all",
    ["reason"],  # model_error | unparseable | no_decisions
)

# ── HTTP ────────────────────────────────────────────────────────────

HTTP_REQUESTS = Counter(
    "agent_memory_http_requests_total",
    "HTTP requests handled, by method and status code",
    ["method", "status"],
)

HTTP_REQUEST_DURATION = Histogram(
    "agent_memory_http_request_duration_seconds",
    "HTTP request latency",
    ["method"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# ── Background dispatch ─────────────────────────────────────────────

EXTRACTION_JOBS_DROPPED = Counter(
    "agent_memory_extraction_jobs_dropped_total",
    "Extraction jobs dropped before running",
    ["reason"],  # queue_full | not_running | dispatch_error
)


@contextmanager
def track_cycle_duration() -> Iterator[None]:
    """Observe the enclosed block in EXTRACTION_CYCLE_DURATION."""
    start = time.perf_counter()
    try:
        yield
    finally:
        EXTRACTION_CYCLE_DURATION.observe(time.perf_counter() - start)
