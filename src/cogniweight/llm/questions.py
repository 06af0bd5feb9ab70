"""
Review questions
================
Multiple-choice questions generated by the remote chat service, plus the
offline "recall the content" test.

Presentation is left to the host: the engine only needs
``node -> Question`` and ``answer -> bool``.
"""

import asyncio
import re
from dataclasses import dataclass, field
from typing import List, Optional

from loguru import logger

from cogniweight.core.config import ServiceConfig
from cogniweight.core.exceptions import (
    MalformedResponseError,
    QuestionGenerationError,
    ServiceError,
)
from cogniweight.core.node import KnowledgeNode
from cogniweight.llm.client import DeepSeekClient


PROMPT_CONTENT_CHARS = 1000
MAX_OPTIONS = 4
BLOOM_UNDERSTAND = 2

_STEM_END = re.compile(r"(?:答案|ANSWER)[:：]|\n\s*[A-D][.．]", re.IGNORECASE)
_STEM_PREFIX = re.compile(r"^(?:问题|question)[:：]?\s*", re.IGNORECASE)
_OPTION_LINE = re.compile(r"^[A-D][.．]")
_OPTION_PREFIX = re.compile(r"^[A-D][.．]\s*")
_ANSWER = re.compile(r"(?:答案|ANSWER)[:：]\s*([A-D])", re.IGNORECASE)


@dataclass
class Question:
    path: str
    question: str
    options: List[str] = field(default_factory=list)
    correct_index: int = 0
    bloom_level: int = BLOOM_UNDERSTAND

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "question": self.question,
            "options": list(self.options),
            "correct_index": self.correct_index,
            "bloom_level": self.bloom_level,
        }


@dataclass
class RecallTest:
    node_id: str
    question: str
    correct_answer: str


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def build_prompt(content: str) -> str:
    return (
        "Write one multiple-choice question about the following note "
        "(keep the options short):\n"
        f"{content[:PROMPT_CONTENT_CHARS]}...\n\n"
        "Requirements:\n"
        "1. Focus the question on the core concept\n"
        "2. Phrase each option as a short phrase of at most 15 words\n"
        "3. Wrong options should reflect common misconceptions\n"
        "4. End with ANSWER: <letter> marking the correct option\n\n"
        "Example:\n"
        "Question: Which algorithm suits sorting a linked list best?\n"
        "A. Quick sort\n"
        "B. Merge sort\n"
        "C. Bubble sort\n"
        "D. Selection sort\n"
        "ANSWER: B"
    )


def parse_question(text: Optional[str], path: str) -> Question:
    """
    Parse a free-text question payload.

    The stem is everything before the first answer marker or option line;
    at most four ``A.``-``D.`` options are kept. Long stems and options are
    truncated with "...".

    Raises:
        MalformedResponseError: fewer than two options, or an answer letter
            that does not point at one of them.
    """
    if not text or not text.strip():
        raise MalformedResponseError("empty question payload")

    match = _STEM_END.search(text)
    cut = match.start() if match else len(text)
    stem_part, options_part = text[:cut].strip(), text[cut:]

    stem_lines = _STEM_PREFIX.sub("", stem_part).split("\n")
    stem = "\n".join(line for line in stem_lines if not _OPTION_LINE.match(line.strip())).strip()

    options = []
    for line in options_part.split("\n"):
        line = line.strip()
        if _OPTION_LINE.match(line):
            options.append(_truncate(_OPTION_PREFIX.sub("", line).strip(), 20))
        if len(options) == MAX_OPTIONS:
            break

    answer = _ANSWER.search(options_part)
    correct_index = ord(answer.group(1).upper()) - ord("A") if answer else -1

    if len(options) < 2 or not 0 <= correct_index < len(options):
        raise MalformedResponseError(
            f"invalid question layout: {len(options)} options, answer index {correct_index}",
            payload=text,
        )

    return Question(
        path=path,
        question=_truncate(stem, 60),
        options=options,
        correct_index=correct_index,
        bloom_level=BLOOM_UNDERSTAND,
    )


def check_choice(question: Question, selected_index: int) -> bool:
    return selected_index == question.correct_index


def generate_recall_test(node: KnowledgeNode) -> RecallTest:
    return RecallTest(
        node_id=node.id,
        question=f"Recall the content of {node.id}:",
        correct_answer=node.content,
    )


def check_answer(test: RecallTest, answer: str) -> bool:
    return answer.strip().lower() == test.correct_answer.lower()


class QuestionGenerator:
    """Generates one question per document with bounded retries."""

    def __init__(self, client: DeepSeekClient, config: Optional[ServiceConfig] = None):
        self.client = client
        self.config = config or client.config

    build_prompt = staticmethod(build_prompt)
    parse_question = staticmethod(parse_question)
    check_choice = staticmethod(check_choice)

    async def generate(self, path: str, content: str) -> Question:
        """
        Raises:
            QuestionGenerationError: every attempt failed with a service
                error or an unparseable payload.
        """
        attempts = max(1, self.config.max_attempts)
        prompt = build_prompt(content)
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                text = await self.client.chat(
                    prompt,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    top_p=self.config.top_p,
                )
                return parse_question(text, path)
            except (ServiceError, MalformedResponseError) as e:
                last_error = e
                logger.warning(f"Question attempt {attempt}/{attempts} for {path} failed: {e}")
                if attempt < attempts:
                    await asyncio.sleep(self.config.retry_delay_seconds)

        raise QuestionGenerationError(path, attempts, cause=last_error)


__all__ = [
    "Question",
    "RecallTest",
    "QuestionGenerator",
    "build_prompt",
    "parse_question",
    "check_choice",
    "generate_recall_test",
    "check_answer",
]
