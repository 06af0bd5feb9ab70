"""
Cognitive stage classification
==============================
Two complementary classifiers:

- ``StageClassifier.classify`` gives an instantaneous label from one set of
  scores.
- ``StageClassifier.transition`` gates stage *changes*: each stage has one
  outgoing ``StageTransition`` whose predicate needs EMA-smoothed evidence,
  so a single noisy reading cannot flip the stage.

The smoothing state here is per node and separate from the engagement EMA
kept by ``InteractionTracker``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from loguru import logger

from .config import StageConfig


class LearningStage(str, Enum):
    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


@dataclass(frozen=True)
class CognitiveStageScores:
    """Classifier input; derived per request and never persisted."""
    complexity: float = 0.0
    engagement: float = 0.0
    centrality: float = 0.0
    reference_count: int = 0

    def to_dict(self) -> dict:
        return {
            "complexity": self.complexity,
            "engagement": self.engagement,
            "centrality": self.centrality,
            "reference_count": self.reference_count,
        }


@dataclass(frozen=True)
class SmoothedScores:
    complexity: float
    engagement: float


def _novice_to_intermediate(scores: CognitiveStageScores, smoothed: SmoothedScores) -> bool:
    return scores.engagement > 0.6 and smoothed.complexity > 0.4


def _intermediate_to_expert(scores: CognitiveStageScores, smoothed: SmoothedScores) -> bool:
    return scores.centrality > 0.7 and smoothed.engagement > 0.5


def _expert_to_intermediate(scores: CognitiveStageScores, smoothed: SmoothedScores) -> bool:
    # Regression needs complexity to have dropped below 0.3 and enough inbound
    # references; a heavily referenced note that stays complex keeps EXPERT
    return smoothed.complexity < 0.3 and scores.reference_count > 7


class StageTransition(Enum):
    """Outgoing transition rule per stage: (source, target, predicate)."""

    NOVICE_TO_INTERMEDIATE = (LearningStage.NOVICE, LearningStage.INTERMEDIATE, _novice_to_intermediate)
    INTERMEDIATE_TO_EXPERT = (LearningStage.INTERMEDIATE, LearningStage.EXPERT, _intermediate_to_expert)
    EXPERT_TO_INTERMEDIATE = (LearningStage.EXPERT, LearningStage.INTERMEDIATE, _expert_to_intermediate)

    def __init__(
        self,
        source: LearningStage,
        target: LearningStage,
        predicate: Callable[[CognitiveStageScores, SmoothedScores], bool],
    ):
        self.source = source
        self.target = target
        self.predicate = predicate

    def allows(self, scores: CognitiveStageScores, smoothed: SmoothedScores) -> bool:
        return bool(self.predicate(scores, smoothed))

    @classmethod
    def from_stage(cls, stage: LearningStage) -> "StageTransition":
        for rule in cls:
            if rule.source is stage:
                return rule
        raise ValueError(f"No transition defined from {stage}")


class StageClassifier:
    """Instantaneous classification plus hysteretic transitions."""

    def __init__(self, config: Optional[StageConfig] = None):
        self.config = config or StageConfig()
        self._ema: Dict[str, Dict[str, float]] = {}

    # ---- Instantaneous label ------------------------------------- #

    @staticmethod
    def dimension_weights(reference_count: int) -> Dict[str, float]:
        raw = {
            "complexity": 0.4 + 0.1 * math.log(max(reference_count, 0) + 1),
            "engagement": 0.3,
            "centrality": 0.3,
        }
        total = sum(raw.values())
        return {k: v / total for k, v in raw.items()}

    def classify(self, scores: CognitiveStageScores) -> LearningStage:
        w = self.dimension_weights(scores.reference_count)
        weighted_complexity = scores.complexity * w["complexity"]
        weighted_engagement = scores.engagement * w["engagement"]
        weighted_centrality = scores.centrality * w["centrality"]

        if weighted_complexity > 0.7 * w["complexity"] and weighted_centrality > 0.6 * w["centrality"]:
            return LearningStage.EXPERT
        if weighted_engagement > 0.4 * w["engagement"] or weighted_centrality > 0.3 * w["centrality"]:
            return LearningStage.INTERMEDIATE
        return LearningStage.NOVICE

    # ---- Hysteresis ---------------------------------------------- #

    @property
    def smoothing_alpha(self) -> float:
        return 2 / (self.config.ema_period + 1)

    def _update_ema(self, node_id: str, dimension: str, value: float) -> float:
        state = self._ema.setdefault(node_id, {})
        previous = state.get(dimension)
        if previous is None:
            current = value
        else:
            current = self.smoothing_alpha * value + (1 - self.smoothing_alpha) * previous
        state[dimension] = current
        return current

    def smoothed(self, node_id: str) -> Optional[SmoothedScores]:
        state = self._ema.get(node_id)
        if not state:
            return None
        return SmoothedScores(state["complexity"], state["engagement"])

    def observe(self, node_id: str, scores: CognitiveStageScores) -> SmoothedScores:
        """Feed one reading into the node's EMA state."""
        return SmoothedScores(
            complexity=self._update_ema(node_id, "complexity", scores.complexity),
            engagement=self._update_ema(node_id, "engagement", scores.engagement),
        )

    def transition(self, node_id: str, current: LearningStage, scores: CognitiveStageScores) -> LearningStage:
        """
        Returns the stage after this reading: the target of the current
        stage's rule when its predicate holds, otherwise ``current``.
        """
        current = LearningStage(current)
        smoothed = self.observe(node_id, scores)
        rule = StageTransition.from_stage(current)
        if rule.allows(scores, smoothed):
            logger.debug(f"Stage {node_id}: {rule.source.value} → {rule.target.value}")
            return rule.target
        return current

    def forget(self, node_id: str) -> None:
        self._ema.pop(node_id, None)


__all__ = [
    "LearningStage",
    "CognitiveStageScores",
    "SmoothedScores",
    "StageTransition",
    "StageClassifier",
]
