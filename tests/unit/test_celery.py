"""Unit tests for the Celery extraction task."""

from unittest.mock import AsyncMock, MagicMock, patch

from agent_memory.celery_app import app, run_extraction_task


class TestCeleryExtractionTask:
    def test_task_registered(self):
        """Extraction task is registered on the Celery app."""
        assert app.tasks.get("agent_memory.celery_app.run_extraction_task") is not None

    def test_task_has_correct_name(self):
        assert run_extraction_task.name == "agent_memory.celery_app.run_extraction_task"

    def test_task_routed_to_extraction_queue(self):
        route = app.conf.task_routes["agent_memory.celery_app.run_extraction_task"]
        assert route == {"queue": "extraction"}

    def test_no_redelivery(self):
        assert app.conf.task_acks_late is False

    def test_task_runs_cycle_and_returns_report(self):
        report = MagicMock()
        report.to_dict.return_value = {"status": "completed"}
        pipeline = MagicMock()
        pipeline.run_cycle = AsyncMock(return_value=report)

        with patch("agent_memory.celery_app._get_pipeline", return_value=pipeline):
            result = run_extraction_task.run(service_id="travel", session_id="s1", user_id="u1")

        assert result == {"status": "completed"}
        job = pipeline.run_cycle.await_args.args[0]
        assert (job.service_id, job.session_id, job.user_id) == ("travel", "s1", "u1")
