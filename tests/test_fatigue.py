"""Tests for usage fatigue."""

import pytest

from app.matching.fatigue import FatigueAdjuster
from app.matching.models import MatchScore
from tests.conftest import make_guideline


class TestFatigueAdjuster:
    @pytest.mark.parametrize("usage_count,expected", [(0, 80.0), (1, 76.0), (2, 72.2)])
    def test_decay_scenario(self, usage_count, expected):
        assert FatigueAdjuster(0.95).adjust(80, usage_count) == pytest.approx(expected)

    def test_strictly_decreasing(self):
        adjuster = FatigueAdjuster(0.95)
        values = [adjuster.adjust(50, k) for k in range(20)]
        assert all(b < a for a, b in zip(values, values[1:]))

    @pytest.mark.parametrize("factor", [0, 1, 1.5, -0.2])
    def test_invalid_factor(self, factor):
        with pytest.raises(ValueError):
            FatigueAdjuster(factor)

    def test_apply_sorts_and_limits(self):
        g1, g2, g3, g4 = (make_guideline(i, f"regla {i}") for i in range(1, 5))
        matches = [
            MatchScore(g1, 90, True),
            MatchScore(g2, 80, True),
            MatchScore(g3, 70, True),
            MatchScore(g4, 60, True),
        ]
        # g1 usada 5 veces: 90 * 0.95^5 ≈ 69.6
        ranked = FatigueAdjuster(0.95).apply(matches, {1: 5}, limit=3)

        assert [r.guideline.id for r in ranked] == [2, 3, 1]
        assert ranked[2].usage_count == 5
        assert ranked[2].original_score == 90
        assert ranked[2].score == pytest.approx(90 * 0.95 ** 5)
        assert ranked[0].fatigue_multiplier == 1.0

    def test_apply_without_usage(self):
        g = make_guideline(1, "regla")
        [ranked] = FatigueAdjuster().apply([MatchScore(g, 42, True)], None)
        assert ranked.score == 42
        assert ranked.usage_count == 0
