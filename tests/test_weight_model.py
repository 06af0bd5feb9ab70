"""
Tests for the cognitive weight model: seasonal decay, interaction boost and
the daily decay commit.
"""

import math
from datetime import timedelta

import pytest

from cogniweight.core.config import WeightConfig
from cogniweight.core.node import CognitiveWeight
from cogniweight.core.weight_model import WeightModel

from conftest import FIXED_NOW, days_ago, make_node


@pytest.fixture
def model():
    return WeightModel(WeightConfig())


class TestCurrentWeight:
    def test_ten_days_without_interactions(self, model):
        weight = CognitiveWeight(base=0.5, last_updated=days_ago(10), interaction_count=0)
        assert model.current_weight(weight, FIXED_NOW) == pytest.approx(0.42, abs=0.02)

    def test_no_elapsed_time_returns_base(self, model):
        weight = CognitiveWeight(base=0.5, last_updated=FIXED_NOW)
        assert model.current_weight(weight, FIXED_NOW) == 0.5

    def test_rounded_to_two_decimals(self, model):
        weight = CognitiveWeight(base=0.3333, last_updated=days_ago(3))
        value = model.current_weight(weight, FIXED_NOW)
        assert value == round(value, 2)

    def test_decreases_with_time(self, model):
        values = [
            model.current_weight(CognitiveWeight(base=0.8, last_updated=days_ago(d)), FIXED_NOW)
            for d in (0, 1, 5, 20, 60)
        ]
        assert values == sorted(values, reverse=True)

    def test_increases_with_interactions(self, model):
        values = [
            model.current_weight(
                CognitiveWeight(base=0.4, last_updated=days_ago(2), interaction_count=n), FIXED_NOW
            )
            for n in (0, 1, 3, 10)
        ]
        assert values == sorted(values)
        assert values[-1] > values[0]

    def test_clock_skew_counts_as_zero(self, model):
        future = CognitiveWeight(base=0.5, last_updated=FIXED_NOW + timedelta(days=3))
        assert model.current_weight(future, FIXED_NOW) == 0.5

    def test_result_is_not_clamped(self):
        model = WeightModel(WeightConfig(alpha=2.0))
        weight = CognitiveWeight(base=1.0, last_updated=FIXED_NOW)
        assert model.current_weight(weight, FIXED_NOW) == 2.0


class TestComponents:
    def test_seasonal_lambda_varies_through_year(self, model):
        spring = model.seasonal_lambda(FIXED_NOW.replace(month=3, day=31))
        autumn = model.seasonal_lambda(FIXED_NOW.replace(month=9, day=30))
        assert spring > 0.05 > autumn
        assert abs(spring - 0.05) <= 0.01 + 1e-9

    def test_no_boost_without_interactions(self, model):
        assert model.interaction_boost(0) == 0.0

    def test_boost_formula(self, model):
        n = 4
        beta = 0.2 * (1 + 0.5 * math.tanh((n - 3) / 2))
        expected = beta * (1 - 1 / (1 + math.log2(n + 1)))
        assert model.interaction_boost(n) == pytest.approx(expected)


class TestMutation:
    def test_record_interaction(self, model):
        weight = CognitiveWeight(base=0.5, last_updated=days_ago(4))
        model.record_interaction(weight, FIXED_NOW)
        assert weight.interaction_count == 1
        assert weight.last_updated == FIXED_NOW
        assert weight.base == 0.5

    def test_touch_commits_and_counts(self, model):
        weight = CognitiveWeight(base=0.5, last_updated=days_ago(10))
        base = model.touch(weight, FIXED_NOW)
        assert base == pytest.approx(0.42, abs=0.02)
        assert weight.interaction_count == 1
        assert weight.last_updated == FIXED_NOW

    def test_touch_clamps_base(self):
        model = WeightModel(WeightConfig(alpha=3.0))
        weight = CognitiveWeight(base=0.9, last_updated=FIXED_NOW)
        assert model.touch(weight, FIXED_NOW) == 1.0


class TestDailyDecay:
    def test_commits_and_resets(self, model):
        nodes = [
            make_node("a", base=0.9, last_updated=days_ago(10), interactions=5),
            make_node("b", base=0.2, last_updated=days_ago(1), interactions=0),
        ]
        expected = [model.current_weight(n.weight, FIXED_NOW) for n in nodes]

        assert model.apply_daily_decay(nodes, FIXED_NOW) == 2
        for node, value in zip(nodes, expected):
            assert node.weight.base == pytest.approx(min(1.0, max(0.0, value)))
            assert node.weight.interaction_count == 0
            assert node.weight.last_updated == FIXED_NOW

    def test_empty_iterable(self, model):
        assert model.apply_daily_decay([], FIXED_NOW) == 0

    def test_failing_node_is_skipped(self, model):
        good = make_node("good", base=0.5, last_updated=days_ago(1))
        bad = make_node("bad")
        bad.weight.last_updated = None  # arithmetic on None fails

        assert model.apply_daily_decay([bad, good], FIXED_NOW) == 1
        assert good.weight.last_updated == FIXED_NOW
