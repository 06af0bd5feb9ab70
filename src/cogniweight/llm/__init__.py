"""
LLM Integration Package – remote question / embedding service
==============================================================

Client:
    - DeepSeekClient: chat, embeddings, link inference, API-key validation

Questions:
    - QuestionGenerator: one multiple-choice question per document, retried
    - parse_question / check_choice: payload parsing and answer checking
    - generate_recall_test / check_answer: offline recall test

Usage:
    from cogniweight.llm import DeepSeekClient, QuestionGenerator

    client = DeepSeekClient(config.service)
    question = await QuestionGenerator(client).generate(path, content)
"""

from .client import DeepSeekClient
from .questions import (
    Question,
    QuestionGenerator,
    RecallTest,
    build_prompt,
    check_answer,
    check_choice,
    generate_recall_test,
    parse_question,
)

__all__ = [
    "DeepSeekClient",
    "Question",
    "QuestionGenerator",
    "RecallTest",
    "build_prompt",
    "check_answer",
    "check_choice",
    "generate_recall_test",
    "parse_question",
]
