"""Unit tests for the extraction cycle."""

import json

import pytest

from agent_memory.consolidation.consolidator import MemoryConsolidator
from agent_memory.core.enums import CycleStatus
from agent_memory.core.exceptions import StorageError
from agent_memory.extraction.memory_extractor import MemoryExtractor
from agent_memory.extraction.pipeline import ExtractionJob, ExtractionPipeline
from agent_memory.memory.long_term import LongTermMemoryStore
from agent_memory.memory.short_term import TranscriptStore
from agent_memory.utils.llm import MockLLMClient

JOB = ExtractionJob(service_id="travel", session_id="s1", user_id="u1")


@pytest.fixture
def build_pipeline(router):
    def _build(llm):
        return ExtractionPipeline(router, MemoryExtractor(llm), MemoryConsolidator(llm))

    return _build


@pytest.fixture
def seed(service_registry, service_config, tenant_store):
    """Register the tenant and append turns to session s1."""

    async def _seed(*turns):
        await service_registry.create(service_config)
        transcripts = TranscriptStore(tenant_store)
        for turn in turns:
            await transcripts.append_turn("travel", turn)

    return _seed


async def _texts(tenant_store, category="preferences"):
    records = await LongTermMemoryStore(tenant_store).list_records("travel", "u1", category)
    return [r.render() for r in records]


class TestExtractionPipeline:
    @pytest.mark.asyncio
    async def test_new_preference_is_added(self, build_pipeline, seed, tenant_store, make_turn):
        await seed(make_turn("I prefer window seats"), make_turn("Got it.", role="assistant"))
        llm = MockLLMClient(responses=[json.dumps({"preferences": [{"text": "prefers window seats"}]})])

        report = await build_pipeline(llm).run_cycle(JOB)

        assert report.status == CycleStatus.COMPLETED
        assert report.turns_read == 2
        assert report.added == 1
        assert await _texts(tenant_store) == ["prefers window seats"]
        # Empty existing memory: consolidation makes no model call.
        assert len(llm.calls) == 1

    @pytest.mark.asyncio
    async def test_changed_preference_replaces_old_one(
        self, build_pipeline, seed, tenant_store, make_turn, make_record
    ):
        await seed(make_turn("Actually I prefer window seats now"))
        await LongTermMemoryStore(tenant_store).append_record("travel", make_record("prefers aisle seats"))
        llm = MockLLMClient(
            responses=[
                json.dumps({"preferences": [{"text": "prefers window seats"}]}),
                json.dumps(
                    {"decisions": [{"newIndex": 0, "action": "conflict", "existingIndex": 0}]}
                ),
            ]
        )

        report = await build_pipeline(llm).run_cycle(JOB)

        assert report.conflicts == 1
        assert await _texts(tenant_store) == ["prefers window seats"]
        assert "prefers aisle seats" in llm.calls[1]["prompt"]

    @pytest.mark.asyncio
    async def test_duplicate_is_skipped(self, build_pipeline, seed, tenant_store, make_turn, make_record):
        await seed(make_turn("I'm vegetarian"))
        await LongTermMemoryStore(tenant_store).append_record(
            "travel", make_record("is vegetarian", category="facts")
        )
        llm = MockLLMClient(
            responses=[
                json.dumps({"facts": [{"text": "is vegetarian"}]}),
                json.dumps({"decisions": [{"newIndex": 0, "action": "skip"}]}),
            ]
        )
        report = await build_pipeline(llm).run_cycle(JOB)
        assert report.skipped == 1
        assert await _texts(tenant_store, "facts") == ["is vegetarian"]

    @pytest.mark.asyncio
    async def test_extraction_failure_writes_nothing(self, build_pipeline, seed, tenant_store, make_turn):
        await seed(make_turn("I prefer window seats"))
        llm = MockLLMClient(responses=[RuntimeError("HTTP 500 from model")])

        report = await build_pipeline(llm).run_cycle(JOB)

        assert report.status == CycleStatus.EXTRACTION_FAILED
        assert not report.success
        assert "HTTP 500" in report.error
        assert await _texts(tenant_store) == []

    @pytest.mark.asyncio
    async def test_consolidation_failure_adds_every_candidate(
        self, build_pipeline, seed, tenant_store, make_turn, make_record
    ):
        await seed(make_turn("I like sushi and I prefer trains"))
        await LongTermMemoryStore(tenant_store).append_record("travel", make_record("likes pizza"))
        llm = MockLLMClient(
            responses=[
                json.dumps({"preferences": [{"text": "likes sushi"}, {"text": "prefers trains"}]}),
                RuntimeError("HTTP 500"),
            ]
        )
        report = await build_pipeline(llm).run_cycle(JOB)
        assert report.status == CycleStatus.COMPLETED
        assert report.added == 2
        assert await _texts(tenant_store) == ["likes pizza", "likes sushi", "prefers trains"]

    @pytest.mark.asyncio
    async def test_empty_transcript_makes_no_call(self, build_pipeline, seed):
        await seed()
        llm = MockLLMClient()
        report = await build_pipeline(llm).run_cycle(JOB)
        assert report.status == CycleStatus.EMPTY_TRANSCRIPT
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_no_candidates(self, build_pipeline, seed, make_turn):
        await seed(make_turn("hello"))
        report = await build_pipeline(MockLLMClient(fixed_response="{}")).run_cycle(JOB)
        assert report.status == CycleStatus.NO_CANDIDATES
        assert report.success

    @pytest.mark.asyncio
    async def test_unknown_tenant_is_reported_not_raised(self, build_pipeline):
        report = await build_pipeline(MockLLMClient()).run_cycle(JOB)
        assert report.status == CycleStatus.FAILED
        assert report.error

    @pytest.mark.asyncio
    async def test_unreadable_category_counts_as_empty(
        self, build_pipeline, seed, tenant_store, make_turn, monkeypatch
    ):
        await seed(make_turn("I prefer window seats"))
        real_list_records = tenant_store.list_records

        async def flaky(list_key, limit=None):
            if list_key.endswith(":bucket:facts"):
                raise StorageError("connection reset")
            return await real_list_records(list_key, limit)

        monkeypatch.setattr(tenant_store, "list_records", flaky)
        llm = MockLLMClient(responses=[json.dumps({"preferences": [{"text": "prefers window seats"}]})])

        report = await build_pipeline(llm).run_cycle(JOB)

        assert report.snapshot_failures == ["facts"]
        assert report.added == 1
        assert await _texts(tenant_store) == ["prefers window seats"]

    @pytest.mark.asyncio
    async def test_apply_failure_does_not_stop_remaining_decisions(
        self, build_pipeline, seed, tenant_store, make_turn, monkeypatch
    ):
        await seed(make_turn("I like sushi and I prefer trains"))
        real_append = tenant_store.append_record
        calls = {"n": 0}

        async def flaky(list_key, record):
            calls["n"] += 1
            if calls["n"] == 1:
                raise StorageError("write failed")
            return await real_append(list_key, record)

        monkeypatch.setattr(tenant_store, "append_record", flaky)
        llm = MockLLMClient(
            responses=[json.dumps({"preferences": [{"text": "likes sushi"}, {"text": "prefers trains"}]})]
        )

        report = await build_pipeline(llm).run_cycle(JOB)

        assert report.apply_failures == 1
        assert report.added == 1
        assert await _texts(tenant_store) == ["prefers trains"]

    @pytest.mark.asyncio
    async def test_report_to_dict(self, build_pipeline, seed, make_turn):
        await seed(make_turn("hello"))
        report = await build_pipeline(MockLLMClient()).run_cycle(JOB)
        data = report.to_dict()
        assert data["status"] == "no_candidates"
        assert data["success"] is True
        assert data["service_id"] == "travel"
        assert isinstance(data["started_at"], str)
