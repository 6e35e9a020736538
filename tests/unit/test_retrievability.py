"""
Unit tests for the forgetting curve and current domain.
"""

import math

import pytest

from studyengine.study.retrievability import (
    calculate_current_domain,
    current_domain,
    elapsed_days,
    interval_for_target,
    item_retrievability,
    retrievability,
)


class TestRetrievability:
    def test_just_reviewed_is_full_recall(self):
        assert retrievability(5.0, 0.0) == 1.0
        assert retrievability(5.0, -2.0) == 1.0

    def test_one_time_constant_is_one_over_e(self):
        assert retrievability(10.0, 10.0) == pytest.approx(math.exp(-1))

    def test_decreases_with_elapsed_time(self):
        values = [retrievability(7.0, t) for t in (0.5, 1, 3, 10, 30)]
        assert values == sorted(values, reverse=True)
        assert all(0 < r <= 1 for r in values)

    def test_higher_stability_decays_slower(self):
        assert retrievability(20.0, 5.0) > retrievability(2.0, 5.0)

    def test_zero_stability_is_floored(self):
        # No division by zero; recall is effectively gone after a day
        r = retrievability(0.0, 1.0)
        assert 0.0 <= r < 1e-6

    def test_interval_for_target_inverts_curve(self):
        t = interval_for_target(10.0, 0.8)
        assert t == pytest.approx(-10.0 * math.log(0.8))
        assert retrievability(10.0, t) == pytest.approx(0.8)


class TestCurrentDomain:
    def test_blend(self):
        assert current_domain(80, 0.5) == pytest.approx(71.0)

    def test_bounds(self):
        assert current_domain(100, 1.0) == pytest.approx(100.0)
        assert current_domain(0, 0.0) == 0.0
        assert current_domain(150, 2.0) == 100.0
        assert current_domain(-5, -1.0) == 0.0

    def test_overdue_high_mastery_keeps_floor(self):
        # Forgotten but well mastered: domain drops, never to zero
        assert current_domain(90, 0.0) == pytest.approx(63.0)


class TestItemLevel:
    def test_never_reviewed_item_reports_zero(self, make_question, now):
        item = make_question()
        assert item_retrievability(item, now) == 0.0
        assert calculate_current_domain(item, now=now) == 0.0
        assert elapsed_days(item, now) == 0.0

    def test_reviewed_item(self, reviewed_question, now):
        item = reviewed_question(days_ago=10, stability=10, mastery=80, now=now)
        r = item_retrievability(item, now)
        assert r == pytest.approx(math.exp(-1))
        assert calculate_current_domain(item, now=now) == pytest.approx(56 + 30 * math.exp(-1))

    def test_elapsed_days_fractional(self, reviewed_question, now):
        item = reviewed_question(days_ago=0.5, now=now)
        assert elapsed_days(item, now) == pytest.approx(0.5)
