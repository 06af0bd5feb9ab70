"""
Tests for the CognitiveEngine facade: document events, persistence,
decay, review flow and per-node serialization.
"""

import asyncio
import random
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from cogniweight.core.config import CogniConfig, PathsConfig
from cogniweight.core.engine import CognitiveEngine
from cogniweight.core.exceptions import (
    DataCorruptionError,
    NodeNotFoundError,
    QuestionGenerationError,
)
from cogniweight.core.persistence import InMemoryStateStore, JsonStateStore
from cogniweight.core.stage import LearningStage
from cogniweight.llm.questions import Question

from conftest import FIXED_NOW


def question_for(path: str) -> Question:
    return Question(path=path, question=f"About {path}?", options=["yes", "no"], correct_index=0)


@pytest.fixture
def generator():
    gen = MagicMock()
    gen.generate = AsyncMock(side_effect=lambda path, content: question_for(path))
    return gen


@pytest.fixture
def engine(config, memory_store, generator):
    return CognitiveEngine(config, store=memory_store, question_generator=generator)


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_offline_without_key(self, engine):
        assert engine.graph.client is None

    @pytest.mark.asyncio
    async def test_injected_client_enables_service(self, config, memory_store, mock_client):
        engine = CognitiveEngine(config, store=memory_store, client=mock_client)
        assert engine.graph.client is mock_client

    @pytest.mark.asyncio
    async def test_initialize_restores_state(self, config, generator):
        seed = CognitiveEngine(config, store=InMemoryStateStore(), question_generator=generator)
        await seed.on_document_event("notes/a.md", "alpha", now=FIXED_NOW)

        engine = CognitiveEngine(config, store=InMemoryStateStore(seed.snapshot()))
        await engine.initialize()

        node = engine.graph.get("notes_a")
        assert node is not None
        assert node.weight.interaction_count == 1

    @pytest.mark.asyncio
    async def test_close_writes_json_file(self, tmp_path):
        config = CogniConfig(paths=PathsConfig(state_file=str(tmp_path / "data" / "state.json")))
        engine = CognitiveEngine(config)
        assert isinstance(engine.store, JsonStateStore)

        await engine.initialize()
        await engine.load_document("a.md", "alpha", now=FIXED_NOW)
        await engine.close()

        assert (tmp_path / "data" / "state.json").exists()
        assert "a.md" in JsonStateStore(tmp_path / "data" / "state.json").load()["documents"]

    @pytest.mark.asyncio
    async def test_corrupt_state_file(self, tmp_path):
        state_file = tmp_path / "state.json"
        state_file.write_text("][", encoding="utf-8")
        engine = CognitiveEngine(CogniConfig(paths=PathsConfig(state_file=str(state_file))))
        with pytest.raises(DataCorruptionError):
            await engine.initialize()

    @pytest.mark.asyncio
    async def test_malformed_records_reset_to_defaults(self, config):
        store = InMemoryStateStore({"documents": {
            "good.md": {"weight": {"base": 0.8, "interaction_count": 2}},
            "bad_base.md": {"weight": {"base": "high"}, "links": ["good"]},
            "bad_date.md": {"weight": {"last_updated": "not-a-date"}, "next_review_date": "soon"},
        }})
        engine = CognitiveEngine(config, store=store)
        await engine.initialize()

        assert engine.graph.get("good").weight.base == 0.8
        for node_id in ("bad_base", "bad_date"):
            node = engine.graph.get(node_id)
            assert node.weight.base == config.weight.initial_weight
            assert node.weight.interaction_count == 0
            assert node.inferred_links == []
            assert node.next_review_date is None

    @pytest.mark.asyncio
    async def test_last_decay_date_survives_restart(self, config, memory_store):
        first = CognitiveEngine(config, store=memory_store)
        await first.initialize()
        await first.apply_daily_decay(FIXED_NOW)
        assert memory_store.load()["last_decay_date"] == "2025-12-31"

        second = CognitiveEngine(config, store=memory_store)
        await second.initialize()
        assert second.last_decay_date == FIXED_NOW.date()

    @pytest.mark.asyncio
    async def test_unreadable_last_decay_date_ignored(self, config):
        engine = CognitiveEngine(config, store=InMemoryStateStore({"documents": {}, "last_decay_date": "yesterday"}))
        await engine.initialize()
        assert engine.last_decay_date is None

    @pytest.mark.asyncio
    async def test_persist_failure_is_logged(self, engine):
        engine.store.save = MagicMock(side_effect=OSError("disk full"))
        assert engine.persist() is False


class TestDocumentEvents:
    @pytest.mark.asyncio
    async def test_load_document_counts_no_interaction(self, engine, memory_store):
        node = await engine.load_document("notes/a.md", "alpha", now=FIXED_NOW)
        assert node.weight.interaction_count == 0
        assert memory_store.save_count == 0

    @pytest.mark.asyncio
    async def test_event_on_new_document(self, engine, memory_store):
        node = await engine.on_document_event("notes/a.md", "alpha", now=FIXED_NOW)
        assert node.weight.interaction_count == 1
        assert memory_store.save_count == 1
        assert "notes/a.md" in memory_store.load()["documents"]

    @pytest.mark.asyncio
    async def test_event_on_existing_document(self, engine):
        await engine.load_document("notes/a.md", "alpha", now=FIXED_NOW)
        later = FIXED_NOW + timedelta(hours=1)
        node = await engine.on_document_event("notes/a.md", "alpha v2", now=later)
        assert node.weight.interaction_count == 1
        assert node.weight.last_updated == later
        assert node.content == "alpha v2"

    @pytest.mark.asyncio
    async def test_concurrent_events_are_all_counted(self, engine):
        await engine.load_document("a.md", "alpha", now=FIXED_NOW)
        await asyncio.gather(*(
            engine.on_document_event("a.md", "alpha", now=FIXED_NOW) for _ in range(5)
        ))
        assert engine.graph.get("a").weight.interaction_count == 5

    @pytest.mark.asyncio
    async def test_event_runs_link_discovery(self, config, memory_store, mock_client):
        engine = CognitiveEngine(config, store=memory_store, client=mock_client)
        await engine.load_document("b.md", "beta", now=FIXED_NOW)
        mock_client.infer_links = AsyncMock(return_value=[{"targetId": "b", "relation": "r", "confidence": 0.95}])

        node = await engine.on_document_event("a.md", "alpha", now=FIXED_NOW)

        assert node.links == ["b"]
        assert memory_store.load()["documents"]["a.md"]["links"] == ["b"]


class TestScoresAndStatus:
    @pytest.mark.asyncio
    async def test_current_weight_by_path(self, engine):
        await engine.on_document_event("a.md", "alpha", now=FIXED_NOW)
        assert engine.current_weight("a.md", FIXED_NOW) == pytest.approx(0.56)
        assert engine.current_weight("missing.md", FIXED_NOW) == 0.0

    @pytest.mark.asyncio
    async def test_document_status(self, engine):
        await engine.on_document_event("notes/a.md", "see [[b]]", now=FIXED_NOW)
        status = engine.document_status("notes/a.md", FIXED_NOW)
        assert status["id"] == "notes_a"
        assert status["path"] == "notes/a.md"
        assert status["interaction_count"] == 1
        assert status["ef"] == 1.3
        assert status["due"] is True
        assert status["next_review_date"] is None
        assert status["links"] == ["b"]

    @pytest.mark.asyncio
    async def test_document_status_unknown(self, engine):
        with pytest.raises(NodeNotFoundError):
            engine.document_status("nope.md")

    @pytest.mark.asyncio
    async def test_engagement_feeds_scores(self, engine):
        await engine.load_document("a.md", "x" * 600, now=FIXED_NOW)
        engine.start_tracking("a.md", "x" * 600, FIXED_NOW)
        assert engine.record_duration("a.md", FIXED_NOW + timedelta(seconds=1)) == 1000

        scores = await engine.cognitive_scores("a.md")
        assert scores.engagement == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_stage_by_path(self, engine):
        await engine.load_document("a.md", "Short.", now=FIXED_NOW)
        await engine.load_document("b.md", "Other.", now=FIXED_NOW)
        assert await engine.detect_stage("a.md") is LearningStage.NOVICE
        assert await engine.stage_transition("a.md", LearningStage.NOVICE) is LearningStage.NOVICE


class TestDecay:
    @pytest.mark.asyncio
    async def test_apply_daily_decay(self, engine, memory_store):
        await engine.on_document_event("a.md", "alpha", now=FIXED_NOW)
        await engine.on_document_event("b.md", "beta", now=FIXED_NOW)
        saves = memory_store.save_count

        updated = await engine.apply_daily_decay(FIXED_NOW + timedelta(days=1))

        assert updated == 2
        assert all(n.weight.interaction_count == 0 for n in engine.graph.nodes())
        assert memory_store.save_count == saves + 1

    @pytest.mark.asyncio
    async def test_decay_and_events_interleave(self, engine):
        for name in ("a", "b", "c"):
            await engine.load_document(f"{name}.md", name, now=FIXED_NOW)

        results = await asyncio.wait_for(asyncio.gather(
            engine.on_document_event("a.md", "a", now=FIXED_NOW),
            engine.apply_daily_decay(FIXED_NOW),
            engine.on_document_event("b.md", "b", now=FIXED_NOW),
            engine.apply_daily_decay(FIXED_NOW),
        ), timeout=5)

        assert results[1] == 3
        assert results[3] == 3

    @pytest.mark.asyncio
    async def test_locks_for_unknown_documents_are_dropped(self, engine):
        await engine.load_document("a.md", "alpha", now=FIXED_NOW)
        await engine.cognitive_scores("a.md")
        with pytest.raises(NodeNotFoundError):
            await engine.detect_stage("missing.md")
        with pytest.raises(NodeNotFoundError):
            await engine.cognitive_scores("ghost.md")

        assert set(engine._node_locks) == {"a"}
        assert engine._lock_users == {}


class TestReviewFlow:
    @pytest.mark.asyncio
    async def test_prepare_review_limits_questions(self, engine, generator):
        for i in range(4):
            await engine.load_document(f"n{i}.md", f"note {i}", now=FIXED_NOW)

        questions = await engine.prepare_review(max_questions=2, now=FIXED_NOW, rng=random.Random(1))

        assert len(questions) == 2
        assert generator.generate.await_count == 2

    @pytest.mark.asyncio
    async def test_prepare_review_default_limit(self, engine):
        for i in range(7):
            await engine.load_document(f"n{i}.md", f"note {i}", now=FIXED_NOW)
        questions = await engine.prepare_review(now=FIXED_NOW)
        assert len(questions) == engine.config.review.max_questions

    @pytest.mark.asyncio
    async def test_failed_generation_is_skipped(self, engine, generator):
        await engine.load_document("good.md", "good", now=FIXED_NOW)
        await engine.load_document("bad.md", "bad", now=FIXED_NOW)

        async def generate(path, content):
            if path == "bad.md":
                raise QuestionGenerationError(path, 3)
            return question_for(path)

        generator.generate = AsyncMock(side_effect=generate)
        questions = await engine.prepare_review(now=FIXED_NOW)

        assert [q.path for q in questions] == ["good.md"]

    @pytest.mark.asyncio
    async def test_nothing_due(self, engine, generator):
        assert await engine.prepare_review(now=FIXED_NOW) == []
        generator.generate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submit_answer(self, engine, memory_store):
        await engine.load_document("a.md", "alpha", now=FIXED_NOW)
        question = question_for("a.md")

        assert await engine.submit_answer(question, 0, now=FIXED_NOW) is True
        assert await engine.submit_answer(question, 1, now=FIXED_NOW) is False

        data = engine.graph.memory.get("a")
        assert list(data.history) == [1, 0]
        assert data.consecutive_failures == 1
        assert engine.graph.get("a").next_review_date is not None
        assert memory_store.load()["documents"]["a.md"]["memory"]["history"] == [1, 0]

    @pytest.mark.asyncio
    async def test_validate_api_key_delegates(self, engine):
        with patch.object(engine.client, "validate_api_key", new=AsyncMock(return_value=True)) as validate:
            assert await engine.validate_api_key("sk-abc") is True
        validate.assert_awaited_once_with("sk-abc")
