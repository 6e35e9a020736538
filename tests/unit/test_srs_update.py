"""
Unit tests for the mastery/stability update rule.
"""

import math
from dataclasses import replace
from datetime import timedelta

import pytest

from studyengine.core.exceptions import NonFiniteStabilityError
from studyengine.core.models import SelfEval, TimingClass
from studyengine.study.srs_update import (
    apply_srs_patch,
    calculate_new_srs_state,
    next_interval_days,
    response_time_factor,
)
from studyengine.study.timing_classifier import TimingVerdict


def _verdict(timing_class, ratio=1.0):
    return TimingVerdict(
        timing_class=timing_class,
        elapsed_sec=30 * ratio,
        reference_sec=30,
        ratio=ratio,
        within_band=0.8 <= ratio <= 1.2,
    )


class TestCorrectAnswer:
    def test_first_correct_answer(self, make_question, settings, now):
        item = make_question(stability=1.0)
        patch = calculate_new_srs_state(item, True, SelfEval.GOOD, 30, settings, now=now)

        assert patch.stability == pytest.approx(1.22)
        assert patch.mastery_score == pytest.approx(15.0)
        assert patch.interval_days == pytest.approx(1.0)
        assert patch.next_review_date == now + timedelta(days=1)
        assert patch.srs_stage == 1
        assert patch.correct_streak == 1
        assert patch.recent_error == 0
        assert patch.last_was_correct is True

    @pytest.mark.parametrize("level", list(SelfEval))
    def test_stability_never_drops(self, reviewed_question, settings, now, level):
        item = reviewed_question(days_ago=3, stability=8, now=now)
        patch = calculate_new_srs_state(item, True, level, 30, settings, now=now)
        assert patch.stability >= item.stability

    def test_lower_recall_grows_more(self, reviewed_question, settings, now):
        fresh = reviewed_question("fresh", days_ago=1, stability=10, now=now)
        overdue = reviewed_question("overdue", days_ago=20, stability=10, now=now)

        fresh_s = calculate_new_srs_state(fresh, True, 2, 30, settings, now=now).stability
        overdue_s = calculate_new_srs_state(overdue, True, 2, 30, settings, now=now).stability
        assert overdue_s > fresh_s

    def test_surviving_a_long_gap_earns_bonus(self, reviewed_question, settings, now):
        on_time = reviewed_question("on-time", days_ago=1, stability=10, now=now)
        # Same recall at review time, but it was scheduled half a day after the last review
        late = replace(on_time, id="late", next_review_date=now - timedelta(days=0.5))

        on_time_s = calculate_new_srs_state(on_time, True, 2, 30, settings, now=now).stability
        late_s = calculate_new_srs_state(late, True, 2, 30, settings, now=now).stability
        assert late_s == pytest.approx(on_time_s * (1 + settings.srs_v2.k_long_gap))

    def test_easier_eval_grows_more(self, reviewed_question, settings, now):
        item = reviewed_question(days_ago=2, stability=10, now=now)
        by_level = [calculate_new_srs_state(item, True, lvl, 30, settings, now=now).stability for lvl in (1, 2, 3)]
        assert by_level == sorted(by_level)

    def test_stability_is_capped(self, reviewed_question, settings, now):
        item = reviewed_question(days_ago=300, stability=300, now=now)
        patch = calculate_new_srs_state(item, True, SelfEval.EASY, 30, settings, now=now)
        assert patch.stability == pytest.approx(settings.srs_v2.cap_S_days)

    def test_mastery_gain_has_diminishing_returns(self, reviewed_question, settings, now):
        item = reviewed_question(mastery=99, now=now)
        patch = calculate_new_srs_state(item, True, SelfEval.EASY, 30, settings, now=now)
        assert patch.mastery_score == pytest.approx(99 + 1 * 0.25 * 1.3)
        assert patch.mastery_score <= 100

    def test_eval_level_is_clamped(self, make_question, settings, now):
        patch = calculate_new_srs_state(make_question(), True, 7, 30, settings, now=now)
        assert patch.attempt.self_eval_level == 3
        assert patch.attempt.grade == "easy"


class TestIncorrectAnswer:
    def test_failure_shrinks_stability_and_mastery(self, reviewed_question, settings, now):
        item = reviewed_question(stability=10, mastery=50, correct_streak=4, srs_stage=3, lapses=1, now=now)
        patch = calculate_new_srs_state(item, False, SelfEval.AGAIN, 30, settings, now=now)

        assert patch.stability == pytest.approx(5.0)
        assert patch.mastery_score == pytest.approx(40.0)
        assert patch.srs_stage == 0
        assert patch.correct_streak == 0
        assert patch.lapses == 2
        assert patch.recent_error == 1
        assert patch.interval_days == pytest.approx(-5.0 * math.log(0.8))

    def test_failure_always_strictly_smaller(self, reviewed_question, settings, now):
        item = reviewed_question(stability=0.01, now=now)
        patch = calculate_new_srs_state(item, False, 0, 30, settings, now=now)
        assert patch.stability < item.stability

    def test_non_finite_stability_raises(self, make_question, settings, now):
        item = make_question(stability=float("inf"), total_attempts=1, last_was_correct=True)
        with pytest.raises(NonFiniteStabilityError):
            calculate_new_srs_state(item, False, 0, 30, settings, now=now)


class TestIntervals:
    def test_minimum_interval(self, settings):
        assert next_interval_days(0.5, False, settings) == settings.srs_v2.min_interval_days

    def test_hot_topic_cap(self, reviewed_question, settings, now):
        item = reviewed_question(stability=100, hot_topic=True, now=now)
        patch = calculate_new_srs_state(item, True, 2, 30, settings, now=now)
        assert patch.interval_days == settings.srs_v2.max_hot_days


class TestTiming:
    def test_rushed_guess_on_guarded_type(self, make_question, settings, now):
        item = make_question(stability=1.0, question_type="02 Multiple choice")
        patch = calculate_new_srs_state(
            item, True, SelfEval.EASY, 2, settings, timing=_verdict(TimingClass.RUSH, 0.07), now=now
        )
        assert patch.stability == pytest.approx(1.12)
        assert patch.mastery_score == pytest.approx(7.5)
        assert patch.timing_class is TimingClass.RUSH

    def test_rush_on_unguarded_item_keeps_eval(self, make_flashcard, settings, now):
        item = make_flashcard(stability=1.0)
        patch = calculate_new_srs_state(
            item, True, SelfEval.EASY, 2, settings, timing=_verdict(TimingClass.RUSH, 0.07), now=now
        )
        assert patch.stability == pytest.approx(1.3)
        assert patch.mastery_score == pytest.approx(15.0)

    def test_response_time_factor(self, settings):
        assert response_time_factor(_verdict(TimingClass.SOP_OK, 0.5), settings) == pytest.approx(1.06)
        assert response_time_factor(_verdict(TimingClass.SOP_OK, 1.0), settings) == pytest.approx(1.03)
        assert response_time_factor(_verdict(TimingClass.SOP_OK, 1.5), settings) == pytest.approx(1.0)
        assert response_time_factor(_verdict(TimingClass.OVER, 2.5), settings) == 1.0
        assert response_time_factor(None, settings) == 1.0

    def test_fluent_answer_earns_bonus(self, make_question, settings, now):
        item = make_question(stability=1.0)
        plain = calculate_new_srs_state(item, True, 2, 15, settings, now=now)
        fluent = calculate_new_srs_state(
            item, True, 2, 15, settings, timing=_verdict(TimingClass.SOP_OK, 0.5), now=now
        )
        assert fluent.stability == pytest.approx(plain.stability * 1.06)


class TestApplyPatch:
    def test_new_snapshot(self, make_question, settings, now):
        item = make_question()
        patch = calculate_new_srs_state(item, True, 2, 30, settings, now=now, diagnostics={"source": "drill"})
        updated = apply_srs_patch(item, patch)

        assert updated.total_attempts == 1
        assert len(updated.attempt_history) == 1
        assert updated.attempt_history[0].diagnostics == {"source": "drill"}
        assert updated.last_reviewed_at == now
        assert updated.stability == patch.stability
        assert not updated.is_new
        # Original snapshot untouched
        assert item.total_attempts == 0
        assert item.attempt_history == ()

    def test_patch_does_not_mutate_item(self, reviewed_question, settings, now):
        item = reviewed_question(now=now)
        calculate_new_srs_state(item, False, 0, 30, settings, now=now)
        assert item.stability == 10.0
        assert item.lapses == 0
