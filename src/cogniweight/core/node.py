from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


_WIKI_LINK = re.compile(r"\[\[([^\[\]|#]+)(?:#[^\[\]|]*)?(?:\|[^\[\]]*)?\]\]")


def parse_timestamp(value: Any, default: Optional[datetime]) -> Optional[datetime]:
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str):
        ts = datetime.fromisoformat(value)
    elif isinstance(value, (int, float)):
        # Epoch milliseconds
        ts = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    else:
        return default
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def node_id_from_path(path: str) -> str:
    """
    Derive the stable node identifier for a document path.

    The last extension is stripped and every "/" becomes "_":
    ``notes/python/asyncio.md`` -> ``notes_python_asyncio``.
    """
    path = path.replace("\\", "/")
    head, sep, tail = path.rpartition("/")
    if "." in tail.lstrip("."):
        tail = tail[: tail.rfind(".")]
    return f"{head}{sep}{tail}".replace("/", "_")


def extract_wiki_links(content: str) -> List[str]:
    """
    Return the raw targets of ``[[Target]]`` style links in order of first
    appearance. Aliases (``|alias``) and headings (``#heading``) are dropped.
    """
    seen: List[str] = []
    for match in _WIKI_LINK.finditer(content or ""):
        target = match.group(1).strip()
        if target and target not in seen:
            seen.append(target)
    return seen


@dataclass
class CognitiveWeight:
    """
    Persistent weight state of one document.

    ``base`` is the last committed weight; it only changes on seeding and on
    the daily decay sweep, and is kept in [0, 1].
    """

    base: float = 0.5
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    interaction_count: int = 0
    previous_engagement: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "base": self.base,
            "last_updated": self.last_updated.isoformat(),
            "interaction_count": self.interaction_count,
            "previous_engagement": self.previous_engagement,
        }

    @classmethod
    def from_dict(cls, d: dict, default_base: float = 0.5) -> "CognitiveWeight":
        base = float(d.get("base", default_base))
        engagement = d.get("previous_engagement")
        return cls(
            base=min(1.0, max(0.0, base)),
            last_updated=parse_timestamp(d.get("last_updated"), datetime.now(timezone.utc)),
            interaction_count=int(d.get("interaction_count", 0)),
            previous_engagement=None if engagement is None else float(engagement),
        )


@dataclass
class KnowledgeNode:
    """One tracked document in the knowledge graph."""

    id: str
    path: str
    content: str = ""
    weight: CognitiveWeight = field(default_factory=CognitiveWeight)
    # Semantic + contextual + structural features; None until computed
    vector: Optional[List[float]] = None
    # Ordered set of outbound neighbor ids: resolved wiki links, then inferred links
    links: List[str] = field(default_factory=list)
    # Links accepted from link inference; persisted, unlike wiki links
    inferred_links: List[str] = field(default_factory=list)
    next_review_date: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_link(self, target_id: str) -> bool:
        """Record an inferred outbound link. Returns False for duplicates and self-links."""
        if target_id == self.id or target_id in self.inferred_links:
            return False
        self.inferred_links.append(target_id)
        if target_id not in self.links:
            self.links.append(target_id)
        return True

    def advance_review_date(self, candidate: datetime) -> datetime:
        """Move ``next_review_date`` forward to ``candidate``; never backwards."""
        if self.next_review_date is None or candidate > self.next_review_date:
            self.next_review_date = candidate
        return self.next_review_date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "path": self.path,
            "weight": self.weight.to_dict(),
            "links": list(self.links),
            "inferred_links": list(self.inferred_links),
            "next_review_date": self.next_review_date.isoformat() if self.next_review_date else None,
        }


__all__ = [
    "CognitiveWeight",
    "KnowledgeNode",
    "node_id_from_path",
    "extract_wiki_links",
    "parse_timestamp",
]
