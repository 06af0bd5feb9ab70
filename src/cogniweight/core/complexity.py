"""
Bilingual text complexity
=========================
A Flesch-Kincaid grade computed over Markdown-stripped text with CJK and
Latin counts added together, squashed by a log-sigmoid into [0.1, 1.0].

The metric is a ranking heuristic, not a readability analyzer: it only
needs to be monotonic and stable across documents.
"""

from __future__ import annotations

import math
import re

from loguru import logger


COMPLEXITY_FLOOR: float = 0.1

_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_IMAGE = re.compile(r"!\[.*?\]\(.*?\)")
_LINK = re.compile(r"\[.*?\]\(.*?\)")
_HTML_TAG = re.compile(r"<[^>]*>")
_HEADING = re.compile(r"#+\s+")
_BULLET = re.compile(r"[-*]\s+")

_CJK_CHAR = re.compile(r"[\u4e00-\u9fa5]")
_CJK_SENTENCE_END = re.compile(r"[。！？]+")
_LATIN_SENTENCE_END = re.compile(r"[.!?]+")
_WORD_SEP = re.compile(r"[\s\u3000]+")
_SYLLABLE_TOKEN_SEP = re.compile(r"\b|\s+")

_VOWELS = frozenset("aeiouy")


class TextComplexityAnalyzer:
    """Scores raw document text into [0.1, 1.0]."""

    def strip_markdown(self, text: str) -> str:
        for pattern in (_CODE_BLOCK, _IMAGE, _LINK, _HTML_TAG, _HEADING, _BULLET):
            text = pattern.sub("", text)
        return text

    def count_sentences(self, text: str) -> int:
        cjk = sum(1 for s in _CJK_SENTENCE_END.split(text) if s.strip())
        latin = sum(1 for s in _LATIN_SENTENCE_END.split(text) if s.strip())
        return max(cjk + latin, 1)

    def count_cjk_chars(self, text: str) -> int:
        return len(_CJK_CHAR.findall(text))

    def count_words(self, text: str) -> int:
        tokens = sum(1 for w in _WORD_SEP.split(text) if w)
        return max(self.count_cjk_chars(text) + tokens, 1)

    @staticmethod
    def _token_syllables(token: str) -> int:
        count = 0
        prev_vowel = False
        for char in token:
            if char in _VOWELS and not prev_vowel:
                count += 1
                prev_vowel = True
            else:
                prev_vowel = False
        if token.endswith("e") and count > 1:
            count -= 1
        return max(count, 1)

    def count_syllables(self, text: str) -> float:
        """
        1.5 per CJK character plus a vowel-group estimate per remaining token.

        Tokens come from splitting on word boundaries, so whitespace and
        punctuation runs count as one syllable each.
        """
        syllables = self.count_cjk_chars(text) * 1.5
        latin = _CJK_CHAR.sub("", text).lower()
        for token in _SYLLABLE_TOKEN_SEP.split(latin):
            if token:
                syllables += self._token_syllables(token)
        return syllables

    def flesch_kincaid_grade(self, text: str) -> float:
        words = self.count_words(text)
        sentences = self.count_sentences(text)
        syllables = self.count_syllables(text)
        return 0.39 * (words / sentences) + 11.8 * (syllables / words) - 15.59

    def complexity(self, text: str) -> float:
        """
        Complexity of ``text`` in [0.1, 1.0]; empty or whitespace-only text
        scores the floor.
        """
        if not text or not text.strip():
            return COMPLEXITY_FLOOR

        plain = self.strip_markdown(text)
        grade = self.flesch_kincaid_grade(plain)

        # ln is undefined at or below zero; such texts score the floor
        if grade + 1 <= 0:
            normalized = 0.0
        else:
            normalized = 1 / (1 + math.exp(-0.5 * (math.log(grade + 1) - 2.5)))

        adjusted = COMPLEXITY_FLOOR + (1 - COMPLEXITY_FLOOR) * normalized
        score = round(min(adjusted, 1.0), 2)
        logger.debug(f"Complexity grade={grade:.2f} score={score:.2f}")
        return score


__all__ = ["COMPLEXITY_FLOOR", "TextComplexityAnalyzer"]
