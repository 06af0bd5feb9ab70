"""
Cognitive Weight Model
======================
Time-decayed familiarity score per document.

    λ(t)      = decay_lambda + 0.01 · sin(2π · dayOfYear / 365)
    timeDecay = alpha · base · exp(-λ · √days)
    β(N)      = beta_coefficient · (1 + 0.5 · tanh((N - 3) / 2))
    boost     = β(N) · (1 - 1 / (1 + log2(N + 1)))
    weight    = round2(timeDecay + boost)

The formula itself is not clamped. Every place that commits a value back
into ``CognitiveWeight.base`` clamps it to [0, 1].

Public API:
    model = WeightModel(config.weight)
    w = model.current_weight(node.weight, now)
    model.record_interaction(node.weight, now)
    model.apply_daily_decay(nodes, now)
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Iterable, Optional

from loguru import logger

from .config import WeightConfig
from .node import CognitiveWeight, KnowledgeNode


MS_PER_DAY: float = 86_400_000.0


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


class WeightModel:
    """
    Computes and commits cognitive weights.

    Stateless apart from its configuration: all per-document state lives on
    ``CognitiveWeight``.
    """

    def __init__(self, config: Optional[WeightConfig] = None) -> None:
        self.config = config or WeightConfig()

    # ---- Core math ----------------------------------------------- #

    def seasonal_lambda(self, now: datetime) -> float:
        day_of_year = now.timetuple().tm_yday
        return self.config.decay_lambda + 0.01 * math.sin(2 * math.pi * day_of_year / 365)

    def interaction_boost(self, interaction_count: int) -> float:
        n = max(interaction_count, 0)
        beta = self.config.beta_coefficient * (1 + 0.5 * math.tanh((n - 3) / 2))
        return beta * (1 - 1 / (1 + math.log2(n + 1)))

    def current_weight(self, weight: CognitiveWeight, now: Optional[datetime] = None) -> float:
        """
        Weight as of ``now``; a pure function of the stored state.

        Elapsed time before ``last_updated`` (clock skew) counts as zero.
        """
        now = _now(now)
        elapsed_ms = (now - weight.last_updated).total_seconds() * 1000.0
        days_elapsed = max(elapsed_ms, 0.0) / MS_PER_DAY

        lam = self.seasonal_lambda(now)
        time_decay = self.config.alpha * weight.base * math.exp(-lam * math.sqrt(days_elapsed))
        boost = self.interaction_boost(weight.interaction_count)
        return round(time_decay + boost, 2)

    # ---- Mutation helpers ---------------------------------------- #

    def record_interaction(self, weight: CognitiveWeight, now: Optional[datetime] = None) -> None:
        """Count one interaction (document opened or edited)."""
        weight.interaction_count += 1
        weight.last_updated = _now(now)

    def touch(self, weight: CognitiveWeight, now: Optional[datetime] = None) -> float:
        """
        Seed update run when a node is created or replaced: commit the
        current weight into ``base`` and count the event as an interaction.
        """
        now = _now(now)
        weight.base = _clamp01(self.current_weight(weight, now))
        weight.last_updated = now
        weight.interaction_count += 1
        return weight.base

    def commit_decay(self, weight: CognitiveWeight, now: datetime) -> float:
        weight.base = _clamp01(self.current_weight(weight, now))
        weight.interaction_count = 0
        weight.last_updated = now
        return weight.base

    def apply_daily_decay(self, nodes: Iterable[KnowledgeNode], now: Optional[datetime] = None) -> int:
        """
        Commit decayed weight for every node and reset interaction counts.

        A node that fails is logged and skipped. Returns the number of nodes
        updated.
        """
        now = _now(now)
        updated = 0
        for node in nodes:
            try:
                before = node.weight.base
                after = self.commit_decay(node.weight, now)
                updated += 1
                logger.debug(f"Decay {node.id}: {before:.2f} → {after:.2f}")
            except Exception as e:
                logger.warning(f"Daily decay failed for node {node.id}: {e}")
        return updated


__all__ = ["MS_PER_DAY", "WeightModel"]
