"""
Node feature vectors and similarity.

Vector layout::

    [ semantic embedding ... , base weight,
      link factor, content factor, age factor, interaction factor,
      structural complexity ]
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence

import numpy as np
from loguru import logger

from .exceptions import MalformedResponseError, ServiceError
from .node import KnowledgeNode

if TYPE_CHECKING:
    from cogniweight.llm.client import DeepSeekClient


SECONDS_PER_DAY = 86400.0
TEMPORAL_WINDOW_DAYS = 30.0


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """Cosine of two vectors; 0 for a missing vector, a length mismatch or a zero vector."""
    if a is None or b is None or len(a) != len(b) or len(a) == 0:
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def jaccard_similarity(a: Iterable[str], b: Iterable[str]) -> float:
    set_a, set_b = set(a), set(b)
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)


def node_similarity(a: KnowledgeNode, b: KnowledgeNode) -> float:
    """
    0.6 · cosine(vectors) + 0.3 · jaccard(links) + 0.1 · temporal closeness.

    Temporal closeness is ``1 - |Δ last_updated| / 30 days`` and is not
    clamped, so documents far apart in time pull the score down.
    """
    semantic = cosine_similarity(a.vector, b.vector)
    structural = jaccard_similarity(a.links, b.links)
    delta_days = abs((a.weight.last_updated - b.weight.last_updated).total_seconds()) / SECONDS_PER_DAY
    temporal = 1 - delta_days / TEMPORAL_WINDOW_DAYS
    return 0.6 * semantic + 0.3 * structural + 0.1 * temporal


class FeatureMatrix:
    """Builds the feature vector of a node from its embedding and its state."""

    def __init__(self, client: Optional["DeepSeekClient"] = None):
        self.client = client

    @staticmethod
    def structural_complexity(node: KnowledgeNode) -> float:
        return (len(node.content) / 500) * 0.7 + (len(node.links) / 10) * 0.3

    @staticmethod
    def context_factors(node: KnowledgeNode, now: Optional[datetime] = None) -> List[float]:
        now = now or datetime.now(timezone.utc)
        length = len(node.content)
        link_factor = min(1.0, len(node.links) / 10)
        content_factor = min(1.0, math.log2(length) / 10) if length > 1 else 0.0
        age_days = max(0.0, (now - node.weight.last_updated).total_seconds() / SECONDS_PER_DAY)
        age_factor = min(1.0, age_days / 30)
        interaction_factor = min(1.0, node.weight.interaction_count / 100)
        return [link_factor, content_factor, age_factor, interaction_factor]

    def compose(self, semantic: Sequence[float], node: KnowledgeNode, now: Optional[datetime] = None) -> List[float]:
        vector = np.concatenate([
            np.asarray(semantic, dtype=np.float64),
            np.asarray([node.weight.base], dtype=np.float64),
            np.asarray(self.context_factors(node, now), dtype=np.float64),
            np.asarray([self.structural_complexity(node)], dtype=np.float64),
        ])
        return vector.tolist()

    async def update_node_vector(self, node: KnowledgeNode, now: Optional[datetime] = None) -> Optional[List[float]]:
        """
        Recompute ``node.vector``. When no client is configured or the
        embedding call fails the vector is left as ``None``.
        """
        if self.client is None:
            node.vector = None
            return None
        try:
            semantic = await self.client.embed(node.content)
        except (ServiceError, MalformedResponseError) as e:
            logger.warning(f"Embedding unavailable for {node.id}: {e}")
            node.vector = None
            return None
        node.vector = self.compose(semantic, node, now)
        return node.vector


__all__ = [
    "cosine_similarity",
    "jaccard_similarity",
    "node_similarity",
    "FeatureMatrix",
]
