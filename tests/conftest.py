import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


# Ensure local src/ package imports work without editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "slow: mark test as slow-running (use pytest -m 'not slow' to skip)"
    )


# =============================================================================
# Time helpers
# =============================================================================

# Day 365 of a non-leap year: sin(2π·365/365) is ~0, so λ equals decay_lambda
FIXED_NOW = datetime(2025, 12, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


def days_ago(days: float, ref: datetime = FIXED_NOW) -> datetime:
    return ref - timedelta(days=days)


# =============================================================================
# Component fixtures
# =============================================================================

@pytest.fixture
def config():
    from cogniweight.core.config import CogniConfig
    return CogniConfig()


@pytest.fixture
def graph(config):
    from cogniweight.core.knowledge_graph import KnowledgeGraph
    return KnowledgeGraph(config)


@pytest.fixture
def memory_store():
    from cogniweight.core.persistence import InMemoryStateStore
    return InMemoryStateStore()


@pytest.fixture
def mock_client():
    """DeepSeekClient stand-in with every remote call mocked."""
    from cogniweight.core.config import ServiceConfig

    client = MagicMock()
    client.config = ServiceConfig(api_key="sk-test", retry_delay_seconds=0.0)
    client.chat = AsyncMock(return_value="")
    client.embed = AsyncMock(return_value=[1.0, 0.0, 0.0])
    client.infer_links = AsyncMock(return_value=[])
    client.validate_api_key = AsyncMock(return_value=True)
    return client


def make_node(node_id: str = "n1", content: str = "", base: float = 0.5,
              last_updated: Optional[datetime] = None, interactions: int = 0,
              links=None, vector=None):
    from cogniweight.core.node import CognitiveWeight, KnowledgeNode
    return KnowledgeNode(
        id=node_id,
        path=f"{node_id}.md",
        content=content,
        weight=CognitiveWeight(
            base=base,
            last_updated=last_updated or FIXED_NOW,
            interaction_count=interactions,
        ),
        links=list(links or []),
        vector=vector,
    )
