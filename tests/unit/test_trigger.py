"""Unit tests for the extraction trigger."""

from unittest.mock import MagicMock

import pytest

from agent_memory.extraction.pipeline import ExtractionJob
from agent_memory.extraction.trigger import ExtractionTrigger
from agent_memory.extraction.worker import ExtractionDispatcher


@pytest.fixture
def dispatcher():
    mock = MagicMock(spec=ExtractionDispatcher)
    mock.submit.return_value = True
    return mock


class TestExtractionTrigger:
    def test_submits_job_for_turn(self, dispatcher, service_config, make_turn):
        trigger = ExtractionTrigger(dispatcher, has_credential=True)
        assert trigger.maybe_trigger(service_config, make_turn("hi", session_id="s9")) is True
        dispatcher.submit.assert_called_once_with(
            ExtractionJob(service_id="travel", session_id="s9", user_id="u1")
        )

    def test_assistant_turns_also_trigger(self, dispatcher, service_config, make_turn):
        trigger = ExtractionTrigger(dispatcher, has_credential=True)
        assert trigger.maybe_trigger(service_config, make_turn("ok", role="assistant"))

    @pytest.mark.parametrize(
        "kwargs,categories,user_id",
        [
            ({"has_credential": True, "enabled": False}, ["preferences"], "u1"),
            ({"has_credential": True}, [], "u1"),
            ({"has_credential": True}, ["unknown_category"], "u1"),
            ({"has_credential": False}, ["preferences"], "u1"),
            ({"has_credential": True}, ["preferences"], ""),
        ],
        ids=["disabled", "no_categories", "only_unknown_categories", "no_credential", "no_user_id"],
    )
    def test_preconditions(self, dispatcher, service_config, make_turn, kwargs, categories, user_id):
        config = service_config.model_copy(update={"memory_categories": categories})
        trigger = ExtractionTrigger(dispatcher, **kwargs)
        assert trigger.maybe_trigger(config, make_turn("hi", user_id=user_id)) is False
        dispatcher.submit.assert_not_called()

    def test_dropped_job_reports_false(self, dispatcher, service_config, make_turn):
        dispatcher.submit.return_value = False
        trigger = ExtractionTrigger(dispatcher, has_credential=True)
        assert trigger.maybe_trigger(service_config, make_turn("hi")) is False

    def test_submit_error_never_propagates(self, dispatcher, service_config, make_turn):
        dispatcher.submit.side_effect = RuntimeError("broker down")
        trigger = ExtractionTrigger(dispatcher, has_credential=True)
        assert trigger.maybe_trigger(service_config, make_turn("hi")) is False
