"""
CognitiveEngine – host-facing facade
====================================
Owns the configuration, the state store, the service client and the
``KnowledgeGraph``, and serializes every state mutation.

Concurrency model:
    - Scoring is synchronous; the only suspension points are service
      calls and (optionally) persistence.
    - Every mutation of one node's weight / review state runs under that
      node's ``asyncio.Lock``.
    - The daily decay sweep blocks new node operations, waits for the ones
      in flight, and then runs with every node lock held.

Usage:
    engine = CognitiveEngine(load_config())
    await engine.initialize()
    await engine.on_document_event("notes/a.md", text)
    questions = await engine.prepare_review()
    await engine.close()
"""

import asyncio
import random
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional

from loguru import logger

from cogniweight.core.config import CogniConfig
from cogniweight.core.exceptions import QuestionGenerationError
from cogniweight.core.knowledge_graph import KnowledgeGraph
from cogniweight.core.node import KnowledgeNode, node_id_from_path
from cogniweight.core.persistence import STATE_VERSION, JsonStateStore, StateStore
from cogniweight.core.stage import CognitiveStageScores, LearningStage
from cogniweight.llm.client import DeepSeekClient
from cogniweight.llm.questions import Question, QuestionGenerator, check_choice


class CognitiveEngine:
    """Cognitive state engine for one knowledge base."""

    def __init__(
        self,
        config: Optional[CogniConfig] = None,
        store: Optional[StateStore] = None,
        client: Optional[DeepSeekClient] = None,
        question_generator: Optional[QuestionGenerator] = None,
    ):
        self.config = config or CogniConfig()
        self.store = store if store is not None else JsonStateStore(self.config.paths.state_file)
        self.client = client or DeepSeekClient(self.config.service)
        # Embeddings and link discovery need a key; without one the graph works offline
        service_enabled = client is not None or bool(self.config.service.api_key)
        self.graph = KnowledgeGraph(self.config, self.client if service_enabled else None)
        self.questions = question_generator or QuestionGenerator(self.client, self.config.service)

        self._node_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._decay_lock = asyncio.Lock()
        self._decay_idle = asyncio.Event()
        self._decay_idle.set()
        self._initialized = False
        # Calendar date of the last committed decay sweep; persisted
        self.last_decay_date: Optional[date] = None

    # ---- Lifecycle ------------------------------------------------ #

    async def initialize(self) -> None:
        """
        Load persisted state.

        Raises:
            DataCorruptionError: the state file exists but cannot be decoded.
        """
        if self._initialized:
            return
        state = self.store.load()
        restored = self.graph.import_documents(state.get("documents", {}))
        self.last_decay_date = _parse_date(state.get("last_decay_date"))
        self._initialized = True
        logger.info(f"CognitiveEngine initialized with {restored} documents")

    async def close(self) -> None:
        self.persist()
        logger.info("CognitiveEngine closed")

    def snapshot(self) -> Dict[str, Any]:
        return {
            "version": STATE_VERSION,
            "last_decay_date": self.last_decay_date.isoformat() if self.last_decay_date else None,
            "documents": self.graph.export_documents(),
        }

    def persist(self) -> bool:
        try:
            self.store.save(self.snapshot())
            return True
        except OSError as e:
            logger.error(f"Failed to persist cognitive state: {e}")
            return False

    # ---- Serialization -------------------------------------------- #

    def _lock_for(self, node_id: str) -> asyncio.Lock:
        lock = self._node_locks.get(node_id)
        if lock is None:
            lock = self._node_locks[node_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _node_guard(self, node_id: str) -> AsyncIterator[None]:
        self._lock_users[node_id] = self._lock_users.get(node_id, 0) + 1
        try:
            while True:
                await self._decay_idle.wait()
                lock = self._lock_for(node_id)
                await lock.acquire()
                if self._decay_idle.is_set():
                    break
                # A decay sweep started while we were waiting
                lock.release()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_user(node_id)

    def _release_user(self, node_id: str) -> None:
        users = self._lock_users[node_id] - 1
        if users:
            self._lock_users[node_id] = users
            return
        del self._lock_users[node_id]
        # Locks of tracked nodes stay; the decay sweep shares them
        if node_id not in self.graph:
            self._node_locks.pop(node_id, None)

    # ---- Document events ------------------------------------------ #

    async def load_document(self, path: str, content: str, now: Optional[datetime] = None) -> KnowledgeNode:
        """Register a document (vault scan) without counting an interaction."""
        async with self._node_guard(node_id_from_path(path)):
            node, _ = self.graph.put(path, content, now=now, seed=False)
            return node

    async def on_document_event(self, path: str, content: str, now: Optional[datetime] = None) -> KnowledgeNode:
        """Create/modify event: count one interaction and upsert the node."""
        now = now or datetime.now(timezone.utc)
        node_id = node_id_from_path(path)
        async with self._node_guard(node_id):
            existing = self.graph.get(node_id)
            if existing is not None:
                self.graph.weight_model.record_interaction(existing.weight, now)
            node = await self.graph.add_node(path, content, now=now, seed=True)
        self.persist()
        return node

    def start_tracking(self, path: str, content: str, now: Optional[datetime] = None) -> None:
        self.graph.tracker.start_tracking(node_id_from_path(path), content, now)

    def record_duration(self, path: str, now: Optional[datetime] = None) -> Optional[int]:
        return self.graph.tracker.record_duration(node_id_from_path(path), now)

    # ---- Scores --------------------------------------------------- #

    def current_weight(self, path: str, now: Optional[datetime] = None) -> float:
        return self.graph.current_weight(node_id_from_path(path), now)

    async def cognitive_scores(self, path: str) -> CognitiveStageScores:
        node_id = node_id_from_path(path)
        async with self._node_guard(node_id):
            return self.graph.cognitive_scores(node_id)

    async def detect_stage(self, path: str) -> LearningStage:
        node_id = node_id_from_path(path)
        async with self._node_guard(node_id):
            return self.graph.detect_stage(node_id)

    async def stage_transition(self, path: str, current: LearningStage) -> LearningStage:
        node_id = node_id_from_path(path)
        async with self._node_guard(node_id):
            return self.graph.stage_transition(node_id, current)

    def document_status(self, path: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        node = self.graph.require(node_id_from_path(path))
        memory = self.graph.memory.get(node.id)
        return {
            "id": node.id,
            "path": node.path,
            "weight": self.graph.current_weight(node.id, now),
            "base": node.weight.base,
            "interaction_count": node.weight.interaction_count,
            "strength": round(self.graph.memory.strength(node.id), 3),
            "ef": round(self.graph.memory.easiness_factor(memory), 3),
            "consecutive_success": memory.consecutive_success if memory else 0,
            "due": self.graph.is_due(node.id, now),
            "next_review_date": node.next_review_date.isoformat() if node.next_review_date else None,
            "links": list(node.links),
        }

    # ---- Decay ---------------------------------------------------- #

    async def apply_daily_decay(self, now: Optional[datetime] = None) -> int:
        """Exclusive batch commit of decayed weights, then persist."""
        now = now or datetime.now(timezone.utc)
        async with self._decay_lock:
            self._decay_idle.clear()
            try:
                locks = [self._lock_for(node_id) for node_id in sorted(self.graph.node_ids())]
                for lock in locks:
                    await lock.acquire()
                try:
                    updated = self.graph.apply_daily_decay(now)
                    self.last_decay_date = now.date()
                finally:
                    for lock in locks:
                        lock.release()
            finally:
                self._decay_idle.set()
        self.persist()
        return updated

    # ---- Review --------------------------------------------------- #

    def due_documents(self, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> List[KnowledgeNode]:
        return self.graph.due_nodes(now, rng)

    async def prepare_review(
        self,
        max_questions: Optional[int] = None,
        now: Optional[datetime] = None,
        rng: Optional[random.Random] = None,
    ) -> List[Question]:
        """
        Generate one question per due document, up to ``max_questions``.
        Documents whose generation fails are logged and skipped.
        """
        limit = self.config.review.max_questions if max_questions is None else max_questions
        selected = self.due_documents(now, rng)[:limit]
        if not selected:
            logger.info("No documents due for review")
            return []

        logger.info(f"Generating {len(selected)} review questions")
        results = await asyncio.gather(
            *(self.questions.generate(node.path, node.content) for node in selected),
            return_exceptions=True,
        )

        questions = []
        for node, result in zip(selected, results):
            if isinstance(result, QuestionGenerationError):
                logger.warning(f"Skipping {node.path}: {result}")
            elif isinstance(result, Exception):
                logger.warning(f"Skipping {node.path}: unexpected error {result!r}")
            else:
                questions.append(result)
        return questions

    async def submit_answer(self, question: Question, selected_index: int, now: Optional[datetime] = None) -> bool:
        """Check the answer, record the outcome and persist. Returns correctness."""
        correct = check_choice(question, selected_index)
        node_id = node_id_from_path(question.path)
        async with self._node_guard(node_id):
            self.graph.record_review(node_id, correct, now)
        self.persist()
        return correct

    async def validate_api_key(self, api_key: Optional[str] = None) -> bool:
        return await self.client.validate_api_key(api_key)


def _parse_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        logger.warning(f"Ignoring unreadable last decay date {value!r}")
        return None


__all__ = ["CognitiveEngine"]
