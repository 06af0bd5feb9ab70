"""
Knowledge Graph
===============
Owns the node map and wires the scoring components together.

Architecture
~~~~~~~~~~~~
::

    document text ──▶ TextComplexityAnalyzer ──┐
    reading sessions ─▶ InteractionTracker ────┤
    link graph ──────▶ CentralityEngine ───────┼─▶ CognitiveStageScores ─▶ StageClassifier
                                               │
    elapsed time + interactions ─▶ WeightModel ┴─▶ weight ─┐
    review outcomes ─────────────▶ MemoryStrengthEngine ───┴─▶ due / interval

Edges
~~~~~
A node's outbound links are its wiki links (``[[Target]]``) resolved to node
ids, followed by links accepted from the link-inference service. Links form
an ordered set: no duplicates, no self-links. Wiki links are resolved by
full path id first, then by file-name stem; unresolved targets are kept as
dangling ids.

The graph itself is not thread-safe and performs no locking; the engine
facade serializes access.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from loguru import logger

from .centrality import CentralityEngine
from .complexity import TextComplexityAnalyzer
from .config import CogniConfig
from .exceptions import MalformedResponseError, NodeNotFoundError, ServiceError
from .features import FeatureMatrix, node_similarity
from .interaction import InteractionTracker
from .memory_strength import MemoryStrengthData, MemoryStrengthEngine, ReviewIntervalPolicy
from .node import CognitiveWeight, KnowledgeNode, extract_wiki_links, node_id_from_path, parse_timestamp
from .stage import CognitiveStageScores, LearningStage, StageClassifier
from .weight_model import WeightModel

if TYPE_CHECKING:
    from cogniweight.llm.client import DeepSeekClient


class KnowledgeGraph:
    """
    Node store plus the per-node satellite state (sessions, review state,
    stage smoothing) keyed by the same node id.
    """

    def __init__(self, config: Optional[CogniConfig] = None, client: Optional["DeepSeekClient"] = None):
        self.config = config or CogniConfig()
        self.client = client

        self.weight_model = WeightModel(self.config.weight)
        self.tracker = InteractionTracker(self.config.engagement)
        self.complexity = TextComplexityAnalyzer()
        self.centrality_engine = CentralityEngine(self.config.centrality)
        self.stages = StageClassifier(self.config.stage)
        self.memory = MemoryStrengthEngine(self.config.memory, self.config.review)
        self.features = FeatureMatrix(client)

        self._nodes: Dict[str, KnowledgeNode] = {}

    # ══════════════════════════════════════════════════════════════════
    # Node Operations
    # ══════════════════════════════════════════════════════════════════

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def nodes(self) -> Iterator[KnowledgeNode]:
        return iter(list(self._nodes.values()))

    def node_ids(self) -> List[str]:
        return list(self._nodes)

    def get(self, node_id: str) -> Optional[KnowledgeNode]:
        return self._nodes.get(node_id)

    def require(self, node_id: str) -> KnowledgeNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def get_by_path(self, path: str) -> Optional[KnowledgeNode]:
        return self._nodes.get(node_id_from_path(path))

    def _new_node(self, path: str, content: str, now: datetime) -> KnowledgeNode:
        node = KnowledgeNode(
            id=node_id_from_path(path),
            path=path,
            content=content,
            weight=CognitiveWeight(base=self.config.weight.initial_weight, last_updated=now),
        )
        self._nodes[node.id] = node
        return node

    def put(self, path: str, content: str, now: Optional[datetime] = None, seed: bool = True) -> Tuple[KnowledgeNode, bool]:
        """
        Create or replace the node for ``path`` without calling the remote
        service. A new node gets its seeding weight update when ``seed`` is
        set. Returns ``(node, created)``.
        """
        now = now or datetime.now(timezone.utc)
        node = self.get_by_path(path)
        created = node is None
        if created:
            node = self._new_node(path, content, now)
            if seed:
                self.weight_model.touch(node.weight, now)
            logger.debug(f"Node added: {node.id} (base={node.weight.base:.2f})")
        else:
            node.path = path
            node.content = content
            # Stale until recomputed
            node.vector = None
        self.refresh_links(node)
        return node, created

    async def add_node(self, path: str, content: str, now: Optional[datetime] = None, seed: bool = True) -> KnowledgeNode:
        """
        Upsert a node, then recompute its feature vector and run link
        discovery when a service client is configured.
        """
        node, _ = self.put(path, content, now=now, seed=seed)
        if self.client is not None:
            await self.features.update_node_vector(node, now)
            await self.find_links_for_node(node.id)
        return node

    # ══════════════════════════════════════════════════════════════════
    # Edges
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _stem(path: str) -> str:
        return node_id_from_path(path.replace("\\", "/").rsplit("/", 1)[-1])

    def resolve_link_target(self, target: str) -> str:
        # Wiki targets usually omit the extension, so try the raw name first
        for candidate in (target.replace("/", "_"), node_id_from_path(target)):
            if candidate in self._nodes:
                return candidate
        stem = target.replace("\\", "/").rsplit("/", 1)[-1]
        matches = sorted(
            node.id for node in self._nodes.values()
            if self._stem(node.path) in (stem, self._stem(stem))
        )
        if matches:
            return matches[0]
        return target.replace("/", "_")

    def refresh_links(self, node: KnowledgeNode) -> List[str]:
        links: List[str] = []
        for target in extract_wiki_links(node.content):
            resolved = self.resolve_link_target(target)
            if resolved != node.id and resolved not in links:
                links.append(resolved)
        for target in node.inferred_links:
            if target != node.id and target not in links:
                links.append(target)
        node.links = links
        return links

    def link_graph(self) -> Dict[str, List[str]]:
        """node id -> outbound ids, re-resolved against the current node set."""
        return {node.id: list(self.refresh_links(node)) for node in self.nodes()}

    def reference_count(self, node_id: str, graph: Optional[Dict[str, List[str]]] = None) -> int:
        """Number of distinct nodes linking to ``node_id``."""
        graph = graph if graph is not None else self.link_graph()
        return sum(1 for source, targets in graph.items() if source != node_id and node_id in targets)

    def similarity(self, a_id: str, b_id: str) -> float:
        return node_similarity(self.require(a_id), self.require(b_id))

    def link_candidates(self, source_id: str) -> List[KnowledgeNode]:
        """
        Other nodes, most similar first when the source has a vector,
        capped at ``links.max_candidates``.
        """
        source = self.require(source_id)
        others = [n for n in self._nodes.values() if n.id != source_id]
        if source.vector is not None:
            others.sort(key=lambda n: node_similarity(source, n), reverse=True)
        return others[: self.config.links.max_candidates]

    async def find_links_for_node(self, node_id: str) -> List[str]:
        """
        Ask the link-inference service about this node's candidates and keep
        the targets above ``links.min_confidence``. Returns the newly added
        target ids; service failures add nothing.
        """
        source = self.require(node_id)
        if self.client is None:
            return []
        candidates = self.link_candidates(node_id)
        if not candidates:
            return []

        try:
            relations = await self.client.infer_links(
                source.content, [(n.id, n.content) for n in candidates]
            )
        except (ServiceError, MalformedResponseError) as e:
            logger.warning(f"Link discovery skipped for {node_id}: {e}")
            return []

        allowed = {n.id for n in candidates}
        added = []
        for relation in relations:
            target = relation["targetId"]
            if relation["confidence"] > self.config.links.min_confidence and target in allowed:
                if source.add_link(target):
                    added.append(target)
        if added:
            logger.debug(f"Linked {node_id} → {added}")
        return added

    # ══════════════════════════════════════════════════════════════════
    # Scores
    # ══════════════════════════════════════════════════════════════════

    def current_weight(self, node_id: str, now: Optional[datetime] = None) -> float:
        node = self._nodes.get(node_id)
        if node is None:
            return 0.0
        return self.weight_model.current_weight(node.weight, now)

    def centrality(self) -> Dict[str, float]:
        return self.centrality_engine.centrality(self.link_graph())

    def cognitive_scores(self, node_id: str) -> CognitiveStageScores:
        node = self.require(node_id)
        graph = self.link_graph()
        ranks = self.centrality_engine.centrality(graph)
        return CognitiveStageScores(
            complexity=self.complexity.complexity(node.content),
            engagement=self.tracker.engagement(node),
            centrality=ranks.get(node_id, 0.0),
            reference_count=self.reference_count(node_id, graph),
        )

    def detect_stage(self, node_id: str) -> LearningStage:
        return self.stages.classify(self.cognitive_scores(node_id))

    def stage_transition(self, node_id: str, current: LearningStage) -> LearningStage:
        return self.stages.transition(node_id, current, self.cognitive_scores(node_id))

    # ══════════════════════════════════════════════════════════════════
    # Review
    # ══════════════════════════════════════════════════════════════════

    def is_due(self, node_id: str, now: Optional[datetime] = None) -> bool:
        return self.memory.is_due(node_id, self.current_weight(node_id, now), now)

    def due_nodes(self, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> List[KnowledgeNode]:
        """All due nodes in random order. One node failing does not drop the rest."""
        now = now or datetime.now(timezone.utc)
        due = []
        for node in self.nodes():
            try:
                if self.is_due(node.id, now):
                    due.append(node)
            except Exception as e:
                logger.warning(f"Due check failed for {node.id}: {e}")
        (rng or random).shuffle(due)
        return due

    def review_interval(self, node_id: str, policy: Optional[ReviewIntervalPolicy] = None, now: Optional[datetime] = None) -> float:
        return self.memory.review_interval(self.current_weight(node_id, now), policy)

    def record_review(self, node_id: str, correct: bool, now: Optional[datetime] = None) -> MemoryStrengthData:
        """Record a review outcome and push ``next_review_date`` forward."""
        now = now or datetime.now(timezone.utc)
        node = self.require(node_id)
        data = self.memory.record_outcome(node_id, correct, now)
        interval = self.review_interval(node_id, now=now)
        node.advance_review_date(now + timedelta(days=interval))
        return data

    # ══════════════════════════════════════════════════════════════════
    # Decay
    # ══════════════════════════════════════════════════════════════════

    def apply_daily_decay(self, now: Optional[datetime] = None) -> int:
        updated = self.weight_model.apply_daily_decay(self.nodes(), now)
        logger.info(f"Daily decay applied to {updated}/{len(self)} nodes")
        return updated

    # ══════════════════════════════════════════════════════════════════
    # State exchange
    # ══════════════════════════════════════════════════════════════════

    def export_documents(self) -> Dict[str, dict]:
        documents = {}
        for node in self._nodes.values():
            record = {
                "weight": node.weight.to_dict(),
                "links": list(node.inferred_links),
                "next_review_date": node.next_review_date.isoformat() if node.next_review_date else None,
            }
            memory = self.memory.get(node.id)
            if memory is not None:
                record["memory"] = memory.to_dict()
            documents[node.path] = record
        return documents

    def import_documents(self, documents: Dict[str, dict], now: Optional[datetime] = None) -> int:
        """
        Restore persisted state. Documents not seen yet get a node with empty
        content that a later upsert fills in. A record with a malformed field
        is reinitialized to defaults. Returns the number restored.
        """
        now = now or datetime.now(timezone.utc)
        restored = 0
        for path, record in documents.items():
            if not isinstance(record, dict):
                logger.warning(f"Skipping unreadable state for {path}")
                continue
            try:
                raw_weight = record.get("weight") or {}
                if not isinstance(raw_weight, dict):
                    raise TypeError("weight record is not an object")
                weight = CognitiveWeight.from_dict(raw_weight, self.config.weight.initial_weight)
                links = [t for t in record.get("links") or [] if isinstance(t, str)]
                next_review = parse_timestamp(record.get("next_review_date"), None)
                memory = None
                if isinstance(record.get("memory"), dict):
                    memory = MemoryStrengthData.from_dict(record["memory"], self.config.memory.window_size)
            except (ValueError, TypeError, OverflowError) as e:
                logger.warning(f"Resetting corrupt state for {path}: {e}")
                weight = CognitiveWeight(base=self.config.weight.initial_weight, last_updated=now)
                links, next_review, memory = [], None, None
            else:
                restored += 1

            node = self.get_by_path(path)
            if node is None:
                node = KnowledgeNode(id=node_id_from_path(path), path=path)
                self._nodes[node.id] = node
            node.weight = weight
            node.inferred_links = links
            node.next_review_date = next_review
            if memory is not None:
                self.memory.set(node.id, memory)
            self.refresh_links(node)
        return restored


__all__ = ["KnowledgeGraph"]
