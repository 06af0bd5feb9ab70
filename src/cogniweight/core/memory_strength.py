"""
Memory Strength / Spaced Repetition
===================================
Per-document review state driven by test outcomes.

Easiness factor (EF) is re-derived on every call from the sliding window of
recent outcomes, never updated incrementally:

    rate = mean(window)  (default 0.7 when the window is empty)
    α, β = rate · 10, (1 - rate) · 10
    EF   = clamp(β · 0.8 / (α + β), 1.3, 2.5)

Strength:
    last result correct:  EF · (1 + 0.2 · ln(consecutive_success + 1))
    otherwise:            max(1, EF · 0.6 · (1 - 0.1 · consecutive_failures))

Two review-interval policies are exposed explicitly (``ReviewIntervalPolicy``):
LINEAR shortens the interval as weight grows, EXPONENTIAL lengthens it.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Deque, Dict, Optional

from loguru import logger

from .config import MemoryConfig, ReviewConfig
from .node import parse_timestamp


EF_MIN: float = 1.3
EF_MAX: float = 2.5
DEFAULT_WINDOW: int = 100


class ReviewIntervalPolicy(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass
class MemoryStrengthData:
    """Review state of one document."""

    ef: float = EF_MAX
    consecutive_success: int = 0
    consecutive_failures: int = 0
    last_test_result: bool = False
    history: Deque[int] = field(default_factory=lambda: deque(maxlen=DEFAULT_WINDOW))
    last_review_time: Optional[datetime] = None

    @property
    def historical_successes(self) -> int:
        return sum(self.history)

    def success_rate(self, default: float = 0.7) -> float:
        if not self.history:
            return default
        return sum(self.history) / len(self.history)

    def to_dict(self) -> dict:
        return {
            "ef": self.ef,
            "consecutive_success": self.consecutive_success,
            "consecutive_failures": self.consecutive_failures,
            "last_test_result": self.last_test_result,
            "history": list(self.history),
            "last_review_time": self.last_review_time.isoformat() if self.last_review_time else None,
        }

    @classmethod
    def from_dict(cls, d: dict, window_size: int = DEFAULT_WINDOW) -> "MemoryStrengthData":
        history = [1 if v else 0 for v in d.get("history", [])]
        last_review = d.get("last_review_time")
        return cls(
            ef=min(EF_MAX, max(EF_MIN, float(d.get("ef", EF_MAX)))),
            consecutive_success=int(d.get("consecutive_success", 0)),
            consecutive_failures=int(d.get("consecutive_failures", 0)),
            last_test_result=bool(d.get("last_test_result", False)),
            history=deque(history, maxlen=window_size),
            last_review_time=parse_timestamp(last_review, None) if last_review is not None else None,
        )


def days_since(then: Optional[datetime], now: datetime) -> float:
    """Days between ``then`` and ``now``; infinite when ``then`` is None."""
    if then is None:
        return math.inf
    return (now - then).total_seconds() / 86400.0


def is_due_for_review(
    strength: float,
    weight: float,
    data: Optional[MemoryStrengthData],
    now: Optional[datetime] = None,
) -> bool:
    """
    A document is due when ANY of:
      (a) strength < 0.8 and fewer than 3 consecutive successes
      (b) weight > 0.6 and at least 2 days since the last review
      (c) at least 7 days since the last review and fewer than 3
          successes in the window

    A document that was never reviewed counts as infinitely overdue.
    """
    now = now or datetime.now(timezone.utc)
    consecutive = data.consecutive_success if data else 0
    successes = data.historical_successes if data else 0
    days = days_since(data.last_review_time if data else None, now)

    return (
        (strength < 0.8 and consecutive < 3)
        or (weight > 0.6 and days >= 2)
        or (days >= 7 and successes < 3)
    )


class MemoryStrengthEngine:
    """
    Owns the per-node ``MemoryStrengthData`` map.

    Missing state is never an error: reads fall back to defaults, and the
    first recorded outcome creates the entry.
    """

    def __init__(self, config: Optional[MemoryConfig] = None, review_config: Optional[ReviewConfig] = None):
        self.config = config or MemoryConfig()
        self.review_config = review_config or ReviewConfig()
        self._data: Dict[str, MemoryStrengthData] = {}

    # ---- State access --------------------------------------------- #

    def get(self, node_id: str) -> Optional[MemoryStrengthData]:
        return self._data.get(node_id)

    def set(self, node_id: str, data: MemoryStrengthData) -> None:
        if data.history.maxlen != self.config.window_size:
            data.history = deque(data.history, maxlen=self.config.window_size)
        self._data[node_id] = data

    def _get_or_create(self, node_id: str) -> MemoryStrengthData:
        data = self._data.get(node_id)
        if data is None:
            data = MemoryStrengthData(history=deque(maxlen=self.config.window_size))
            self._data[node_id] = data
        return data

    def items(self):
        return self._data.items()

    # ---- Core math ------------------------------------------------ #

    def easiness_factor(self, data: Optional[MemoryStrengthData]) -> float:
        rate = data.success_rate(self.config.default_success_rate) if data else self.config.default_success_rate
        alpha = rate * 10
        beta = (1 - rate) * 10
        return min(EF_MAX, max(EF_MIN, beta * 0.8 / (alpha + beta)))

    def strength(self, node_id: str) -> float:
        data = self._data.get(node_id)
        ef = self.easiness_factor(data)
        if data is not None:
            data.ef = ef

        if data is not None and data.last_test_result:
            return ef * (1 + 0.2 * math.log(data.consecutive_success + 1))
        failures = data.consecutive_failures if data else 0
        return max(1.0, ef * 0.6 * (1 - 0.1 * failures))

    # ---- Mutation ------------------------------------------------- #

    def record_outcome(self, node_id: str, correct: bool, now: Optional[datetime] = None) -> MemoryStrengthData:
        data = self._get_or_create(node_id)
        data.last_review_time = now or datetime.now(timezone.utc)
        data.last_test_result = bool(correct)
        if correct:
            data.consecutive_success += 1
            data.consecutive_failures = 0
        else:
            data.consecutive_failures += 1
            data.consecutive_success = 0
        # deque(maxlen) evicts the oldest outcome
        data.history.append(1 if correct else 0)
        logger.debug(
            f"Outcome {node_id}: {'correct' if correct else 'wrong'} "
            f"(streak +{data.consecutive_success}/-{data.consecutive_failures}, window={len(data.history)})"
        )
        return data

    # ---- Scheduling ----------------------------------------------- #

    def review_interval(self, weight: float, policy: Optional[ReviewIntervalPolicy] = None) -> float:
        """Days until the next review for a document of this weight."""
        policy = ReviewIntervalPolicy(policy or self.review_config.interval_policy)
        max_interval = self.review_config.max_review_interval
        if policy is ReviewIntervalPolicy.EXPONENTIAL:
            interval = math.pow(2, 5 * weight)
        else:
            # Half-up rounding
            interval = math.floor(10 * (1 - weight) + 0.5)
        return float(min(max_interval, max(1, interval)))

    def is_due(self, node_id: str, weight: float, now: Optional[datetime] = None) -> bool:
        return is_due_for_review(self.strength(node_id), weight, self._data.get(node_id), now)


__all__ = [
    "EF_MIN",
    "EF_MAX",
    "ReviewIntervalPolicy",
    "MemoryStrengthData",
    "MemoryStrengthEngine",
    "days_since",
    "is_due_for_review",
]
