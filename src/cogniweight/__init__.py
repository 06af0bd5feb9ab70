"""
cogniweight - Cognitive State Engine for Personal Knowledge Bases
==================================================================

Assigns every document in a knowledge base a dynamic "cognitive weight"
reflecting retention, centrality and linguistic complexity, and uses it to
drive a spaced-repetition review scheduler.

Main Packages:
    - core: weight decay, engagement, complexity, centrality, stage
            classification, memory strength, knowledge graph, engine
    - llm: remote question / embedding / link-inference service client
    - cli: command-line host

Quick Start:
    from cogniweight.core import CognitiveEngine, load_config

    engine = CognitiveEngine(load_config())
    await engine.initialize()
    await engine.on_document_event("notes/graph.md", text)
    questions = await engine.prepare_review()

Version: 0.3.0
"""

__version__ = "0.3.0"
