"""
Tests for the bilingual text complexity score.
"""

import pytest

from cogniweight.core.complexity import COMPLEXITY_FLOOR, TextComplexityAnalyzer


@pytest.fixture
def analyzer():
    return TextComplexityAnalyzer()


DENSE_TEXT = (
    "Internationalization considerations notwithstanding, comprehensive "
    "institutional responsibilities necessitate extraordinary organizational "
    "accountability throughout interdisciplinary collaborations"
)


class TestComplexityScore:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_scores_floor(self, analyzer, text):
        assert analyzer.complexity(text) == COMPLEXITY_FLOOR

    def test_single_letter_scores_floor(self, analyzer):
        assert analyzer.complexity("a") == pytest.approx(0.1)

    def test_range(self, analyzer):
        for text in ("Hello world.", DENSE_TEXT, "机器学习是人工智能的一个分支。", "# Title\n\n- item"):
            score = analyzer.complexity(text)
            assert 0.1 <= score <= 1.0

    def test_dense_text_scores_higher(self, analyzer):
        assert analyzer.complexity(DENSE_TEXT) > analyzer.complexity("a")

    def test_two_decimals(self, analyzer):
        score = analyzer.complexity(DENSE_TEXT)
        assert score == round(score, 2)

    def test_markdown_noise_is_ignored(self, analyzer):
        plain = "Photosynthesis converts light energy into chemical energy."
        noisy = plain + "\n```python\nprint('x' * 1000)\n```\n![img](pic.png)"
        assert analyzer.complexity(noisy) == analyzer.complexity(plain)


class TestCounts:
    def test_strip_markdown(self, analyzer):
        text = "# Heading\n- bullet\n[link](http://x) <b>bold</b>"
        stripped = analyzer.strip_markdown(text)
        assert "#" not in stripped
        assert "http" not in stripped
        assert "<b>" not in stripped

    def test_cjk_chars(self, analyzer):
        assert analyzer.count_cjk_chars("机器 learning 学习") == 4

    def test_words_add_cjk_and_tokens(self, analyzer):
        # 2 CJK chars plus 2 whitespace-separated tokens
        assert analyzer.count_words("学习 hello") == 4

    def test_sentences_never_zero(self, analyzer):
        assert analyzer.count_sentences("") == 1

    def test_cjk_syllables(self, analyzer):
        assert analyzer.count_syllables("学习") == pytest.approx(3.0)

    @pytest.mark.parametrize("token,expected", [
        ("cat", 1),
        ("table", 1),
        ("banana", 3),
        ("rhythm", 1),
        ("queue", 1),
    ])
    def test_token_syllables(self, token, expected):
        assert TextComplexityAnalyzer._token_syllables(token) == expected
