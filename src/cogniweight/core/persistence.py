"""
State persistence
=================
Storage for per-document weight and memory-strength state, keyed by
document path::

    {"version": "1.0",
     "last_decay_date": "2025-12-31",
     "documents": {"notes/a.md": {"weight": {...}, "memory": {...},
                                  "links": [...], "next_review_date": "..."}}}

Fields are additive: readers ignore unknown keys and default missing ones.
"""

from __future__ import annotations

import copy
import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Union

from loguru import logger

from .exceptions import DataCorruptionError


STATE_VERSION = "1.0"


def empty_state() -> Dict[str, Any]:
    return {"version": STATE_VERSION, "documents": {}}


class StateStore(ABC):
    """Load / save the whole state document."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def save(self, state: Dict[str, Any]) -> None:
        ...


class InMemoryStateStore(StateStore):
    def __init__(self, initial: Dict[str, Any] = None):
        self._state = copy.deepcopy(initial) if initial else empty_state()
        self.save_count = 0

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._state)

    def save(self, state: Dict[str, Any]) -> None:
        self._state = copy.deepcopy(state)
        self.save_count += 1


class JsonStateStore(StateStore):
    """
    JSON file store. Writes go to a sibling temp file that is then renamed
    over the target, so a crash never leaves a half-written state file.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """
        Returns:
            The state document; an empty one when the file does not exist.

        Raises:
            DataCorruptionError: The file exists but is not a valid state
                document.
        """
        if not self.path.exists():
            return empty_state()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DataCorruptionError(str(self.path), reason=f"Cannot decode state file ({e})")
        if not isinstance(raw, dict) or not isinstance(raw.get("documents", {}), dict):
            raise DataCorruptionError(str(self.path), reason="Unexpected state layout")

        raw.setdefault("version", STATE_VERSION)
        raw.setdefault("documents", {})
        logger.info(f"Loaded cognitive state for {len(raw['documents'])} documents from {self.path}")
        return raw

    def save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(state, indent=2, ensure_ascii=False, default=str), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Persisted cognitive state ({len(state.get('documents', {}))} documents) to {self.path}")


__all__ = [
    "STATE_VERSION",
    "empty_state",
    "StateStore",
    "InMemoryStateStore",
    "JsonStateStore",
]
