"""Unit tests for detached extraction dispatch."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agent_memory.extraction.pipeline import ExtractionJob
from agent_memory.extraction.worker import CeleryDispatcher, ExtractionWorkerPool


def _job(n: int = 0) -> ExtractionJob:
    return ExtractionJob(service_id="travel", session_id=f"s{n}", user_id="u1")


@pytest.fixture
def pipeline():
    mock = MagicMock()
    mock.run_cycle = AsyncMock()
    return mock


class TestExtractionWorkerPool:
    @pytest.mark.asyncio
    async def test_runs_submitted_jobs(self, pipeline):
        pool = ExtractionWorkerPool(pipeline, concurrency=2)
        await pool.start()
        assert pool.submit(_job(1))
        assert pool.submit(_job(2))
        await pool.join()
        await pool.stop()
        assert {c.args[0].session_id for c in pipeline.run_cycle.await_args_list} == {"s1", "s2"}

    @pytest.mark.asyncio
    async def test_worker_survives_cycle_errors(self, pipeline):
        pipeline.run_cycle.side_effect = [RuntimeError("boom"), None]
        pool = ExtractionWorkerPool(pipeline, concurrency=1)
        await pool.start()
        pool.submit(_job(1))
        pool.submit(_job(2))
        await pool.join()
        assert pipeline.run_cycle.await_count == 2
        await pool.stop()

    @pytest.mark.asyncio
    async def test_submit_before_start_drops(self, pipeline):
        pool = ExtractionWorkerPool(pipeline)
        assert pool.submit(_job()) is False
        assert pool.pending() == 0

    @pytest.mark.asyncio
    async def test_full_queue_drops(self, pipeline):
        pool = ExtractionWorkerPool(pipeline, concurrency=0, queue_size=1, shutdown_grace_seconds=0.01)
        await pool.start()
        assert pool.submit(_job(1)) is True
        assert pool.submit(_job(2)) is False
        assert pool.pending() == 1
        await pool.stop()

    @pytest.mark.asyncio
    async def test_stop_drains_queued_jobs(self, pipeline):
        async def slow_cycle(job):
            await asyncio.sleep(0.01)

        pipeline.run_cycle.side_effect = slow_cycle
        pool = ExtractionWorkerPool(pipeline, concurrency=1, shutdown_grace_seconds=5)
        await pool.start()
        for n in range(3):
            pool.submit(_job(n))
        await pool.stop()
        assert pipeline.run_cycle.await_count == 3
        assert not pool.running
        assert pool.submit(_job()) is False


class TestCeleryDispatcher:
    def test_submit_enqueues_task(self):
        with patch("agent_memory.celery_app.run_extraction_task.delay") as delay:
            assert CeleryDispatcher().submit(_job(1)) is True
        delay.assert_called_once_with(service_id="travel", session_id="s1", user_id="u1")

    def test_broker_error_drops_job(self):
        with patch(
            "agent_memory.celery_app.run_extraction_task.delay",
            side_effect=ConnectionError("broker down"),
        ):
            assert CeleryDispatcher().submit(_job()) is False

    @pytest.mark.asyncio
    async def test_send_inside_event_loop_runs_off_loop(self):
        release = threading.Event()
        callers = []

        def slow_delay(**kwargs):
            callers.append(threading.current_thread())
            release.wait(timeout=5)

        dispatcher = CeleryDispatcher()
        with patch("agent_memory.celery_app.run_extraction_task.delay", side_effect=slow_delay) as delay:
            assert dispatcher.submit(_job(1)) is True
            assert not release.is_set()
            release.set()
            await dispatcher.stop()

        delay.assert_called_once_with(service_id="travel", session_id="s1", user_id="u1")
        assert callers[0] is not threading.current_thread()

    @pytest.mark.asyncio
    async def test_broker_error_inside_event_loop_is_contained(self):
        dispatcher = CeleryDispatcher()
        with patch(
            "agent_memory.celery_app.run_extraction_task.delay",
            side_effect=ConnectionError("broker down"),
        ) as delay:
            assert dispatcher.submit(_job()) is True
            await dispatcher.stop()
        delay.assert_called_once()
