"""
cogniweight Core Module
=======================
The cognitive state engine: scoring algorithms, graph orchestration,
configuration, persistence and scheduling.

Scoring:
    - WeightModel: Seasonal square-root time decay plus interaction boost
    - InteractionTracker: Reading sessions and smoothed engagement
    - TextComplexityAnalyzer: Bilingual Flesch-Kincaid complexity in [0.1, 1]
    - CentralityEngine: Damped PageRank-like link centrality
    - StageClassifier: Novice / intermediate / expert with hysteresis
    - MemoryStrengthEngine: Easiness factor, strength and review scheduling

Orchestration:
    - KnowledgeGraph: Node store, link discovery, similarity, due selection
    - CognitiveEngine: Host-facing facade with per-node serialization
    - DailyDecayScheduler: Once-a-day decay sweep

Configuration:
    Settings come from config.yaml (key ``cogniweight:``) with COGNI_*
    environment overrides; see ``load_config``.

Example:
    from cogniweight.core import CognitiveEngine, load_config

    engine = CognitiveEngine(load_config())
    await engine.initialize()
    await engine.on_document_event("notes/graphs.md", text)
"""

from .config import CogniConfig, load_config
from .exceptions import (
    CogniWeightError,
    RecoverableError,
    IrrecoverableError,
    ServiceError,
    MalformedResponseError,
    ConfigurationError,
    InvalidApiKeyError,
    NodeNotFoundError,
    DataCorruptionError,
    QuestionGenerationError,
)
from .node import CognitiveWeight, KnowledgeNode, node_id_from_path, extract_wiki_links
from .weight_model import WeightModel
from .interaction import InteractionDuration, InteractionTracker
from .complexity import TextComplexityAnalyzer
from .centrality import CentralityEngine
from .stage import CognitiveStageScores, LearningStage, StageClassifier, StageTransition
from .memory_strength import (
    MemoryStrengthData,
    MemoryStrengthEngine,
    ReviewIntervalPolicy,
    is_due_for_review,
)
from .features import FeatureMatrix, cosine_similarity, jaccard_similarity, node_similarity
from .persistence import StateStore, JsonStateStore, InMemoryStateStore
from .knowledge_graph import KnowledgeGraph


# Lazy: the engine imports cogniweight.llm, which imports this package
def __getattr__(name):
    if name == "CognitiveEngine":
        from .engine import CognitiveEngine
        return CognitiveEngine
    if name == "DailyDecayScheduler":
        from .scheduler import DailyDecayScheduler
        return DailyDecayScheduler
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CogniConfig",
    "load_config",
    "CogniWeightError",
    "RecoverableError",
    "IrrecoverableError",
    "ServiceError",
    "MalformedResponseError",
    "ConfigurationError",
    "InvalidApiKeyError",
    "NodeNotFoundError",
    "DataCorruptionError",
    "QuestionGenerationError",
    "CognitiveWeight",
    "KnowledgeNode",
    "node_id_from_path",
    "extract_wiki_links",
    "WeightModel",
    "InteractionDuration",
    "InteractionTracker",
    "TextComplexityAnalyzer",
    "CentralityEngine",
    "CognitiveStageScores",
    "LearningStage",
    "StageClassifier",
    "StageTransition",
    "MemoryStrengthData",
    "MemoryStrengthEngine",
    "ReviewIntervalPolicy",
    "is_due_for_review",
    "FeatureMatrix",
    "cosine_similarity",
    "jaccard_similarity",
    "node_similarity",
    "StateStore",
    "JsonStateStore",
    "InMemoryStateStore",
    "KnowledgeGraph",
    "CognitiveEngine",
    "DailyDecayScheduler",
]
