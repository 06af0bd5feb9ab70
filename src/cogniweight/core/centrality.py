"""
Link-graph centrality
=====================
A damped, PageRank-like importance score over the directed link graph.

Differences from textbook PageRank:
    - Received contributions accumulate across iterations; the accumulator
      is never reset, so ranks keep growing with the iteration count.
    - Each iteration sets ``rank = (1 - d) / |V| + accumulated``.
    - Dangling nodes contribute nothing; their mass is not redistributed.
    - Out-degree counts every declared target, but contributions towards
      targets outside the graph are dropped.

A graph with no edges therefore yields the random-jump floor for every node.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional

from loguru import logger

from .config import CentralityConfig


class CentralityEngine:
    """Computes per-node centrality for a whole graph at once."""

    def __init__(self, config: Optional[CentralityConfig] = None):
        self.config = config or CentralityConfig()

    @staticmethod
    def _adjacency(graph: Mapping[str, Iterable[str]]) -> Dict[str, List[str]]:
        adjacency: Dict[str, List[str]] = {}
        for node_id, targets in graph.items():
            unique: List[str] = []
            for target in targets:
                if target not in unique:
                    unique.append(target)
            adjacency[node_id] = unique
        return adjacency

    def centrality(self, graph: Mapping[str, Iterable[str]]) -> Dict[str, float]:
        """
        Args:
            graph: node id -> outbound target ids.

        Returns:
            node id -> centrality. Empty for an empty graph.
        """
        adjacency = self._adjacency(graph)
        size = len(adjacency)
        if size == 0:
            return {}

        damping = self.config.damping_factor
        random_jump = (1 - damping) / size

        rank = {node_id: 1.0 / size for node_id in adjacency}
        received = {node_id: 0.0 for node_id in adjacency}

        for _ in range(self.config.iterations):
            for source, targets in adjacency.items():
                if not targets:
                    continue
                contribution = damping * rank[source] / len(targets)
                for target in targets:
                    if target in received:
                        received[target] += contribution
            rank = {node_id: random_jump + received[node_id] for node_id in adjacency}

        logger.debug(f"Centrality computed for {size} nodes over {self.config.iterations} iterations")
        return rank

    def centrality_of(self, node_id: str, graph: Mapping[str, Iterable[str]]) -> float:
        """Centrality of a single node; 0 when the node is not in the graph."""
        return self.centrality(graph).get(node_id, 0.0)


__all__ = ["CentralityEngine"]
