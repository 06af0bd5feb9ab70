"""
Interaction tracking: per-document reading sessions turned into a smoothed
engagement score.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from loguru import logger

from .config import EngagementConfig
from .node import KnowledgeNode, extract_wiki_links


@dataclass
class InteractionDuration:
    """Ephemeral session state for one document. Durations are milliseconds."""

    start_time: datetime
    content_length: int
    durations: List[int] = field(default_factory=list)
    link_count: int = 0

    @property
    def total_ms(self) -> int:
        return sum(self.durations)


class InteractionTracker:
    """
    Tracks at most one open session per node and derives engagement from it.

    The engagement EMA is stored on the node (``weight.previous_engagement``)
    and seeded with the first raw sample.
    """

    def __init__(self, config: Optional[EngagementConfig] = None):
        self.config = config or EngagementConfig()
        self._sessions: Dict[str, InteractionDuration] = {}

    def is_tracking(self, node_id: str) -> bool:
        return node_id in self._sessions

    def session(self, node_id: str) -> Optional[InteractionDuration]:
        return self._sessions.get(node_id)

    def start_tracking(self, node_id: str, content: str, now: Optional[datetime] = None) -> InteractionDuration:
        """Open a session for ``node_id``; an already-open session is returned unchanged."""
        existing = self._sessions.get(node_id)
        if existing is not None:
            return existing
        session = InteractionDuration(
            start_time=now or datetime.now(timezone.utc),
            content_length=len(content or ""),
            link_count=len(extract_wiki_links(content)),
        )
        self._sessions[node_id] = session
        logger.debug(f"Tracking started for {node_id} ({session.content_length} chars, {session.link_count} links)")
        return session

    def record_duration(self, node_id: str, now: Optional[datetime] = None) -> Optional[int]:
        """Append the time since the session (re)started and restart it. No-op if untracked."""
        session = self._sessions.get(node_id)
        if session is None:
            return None
        now = now or datetime.now(timezone.utc)
        elapsed_ms = max(0, int((now - session.start_time).total_seconds() * 1000))
        session.durations.append(elapsed_ms)
        session.start_time = now
        return elapsed_ms

    def flush(self, node_id: str) -> Optional[InteractionDuration]:
        """Close and return the session for ``node_id``."""
        return self._sessions.pop(node_id, None)

    def raw_engagement(self, node_id: str) -> float:
        session = self._sessions.get(node_id)
        if session is None:
            return 0.0
        return (session.total_ms * 0.6 + session.link_count * 0.4) / max(session.content_length, 1)

    def engagement(self, node: KnowledgeNode) -> float:
        """
        Smoothed engagement for ``node``; writes the new EMA back onto the node.
        Returns 0 for a node with no tracked session.
        """
        if node.id not in self._sessions:
            return 0.0
        raw = self.raw_engagement(node.id)
        previous = node.weight.previous_engagement
        if previous is None:
            smoothed = raw
        else:
            alpha = self.config.smoothing_factor
            smoothed = alpha * raw + (1 - alpha) * previous
        node.weight.previous_engagement = smoothed
        logger.debug(f"Engagement {node.id}: raw={raw:.4f} ema={smoothed:.4f}")
        return smoothed


__all__ = ["InteractionDuration", "InteractionTracker"]
