"""
Mastery/Stability Update Rule.

Given an attempt outcome, computes the item's next SRS state:

On correct:
    S' = S * (1 + alpha_eval * (1 + 2 * (1 - R))) * rt_factor * gap_factor
    (never below S, capped at cap_S_days)
    m' = m + min(max_gain, (100 - m) * gain_rate * eval_weight)

On incorrect:
    S' = S * gamma_fail
    m' = m * (1 - error_penalty)

Both branches:
    interval = max(min_interval_days, -S' * ln(r_target))
    interval = min(interval, max_hot_days)   if hot topic

The rule is a pure value transformation: it returns an SrsPatch and never
mutates the input item. apply_srs_patch() produces the new snapshot.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from loguru import logger

from config import Settings, get_settings
from studyengine.core.clock import add_days, days_between, ensure_aware, utc_now
from studyengine.core.exceptions import NonFiniteStabilityError
from studyengine.core.models import Attempt, SelfEval, StudyItem, TimingClass
from studyengine.study.retrievability import (
    clamp,
    elapsed_days,
    interval_for_target,
    item_retrievability,
)
from studyengine.study.timing_classifier import TimingVerdict, is_guarded


@dataclass(frozen=True)
class SrsPatch:
    """New SRS state for an item after one attempt."""

    stability: float
    mastery_score: float
    next_review_date: datetime
    last_reviewed_at: datetime
    interval_days: float
    srs_stage: int
    correct_streak: int
    lapses: int
    last_was_correct: bool
    recent_error: int
    attempt: Attempt

    @property
    def timing_class(self) -> TimingClass | None:
        return self.attempt.timing_class

    def to_dict(self) -> dict[str, Any]:
        """Field patch the caller can merge into its stored item."""
        return {
            "stability": self.stability,
            "mastery_score": self.mastery_score,
            "next_review_date": self.next_review_date,
            "last_reviewed_at": self.last_reviewed_at,
            "srs_stage": self.srs_stage,
            "correct_streak": self.correct_streak,
            "lapses": self.lapses,
            "last_was_correct": self.last_was_correct,
            "recent_error": self.recent_error,
        }


def _alpha_for(level: SelfEval, settings: Settings) -> float:
    v2 = settings.srs_v2
    if level is SelfEval.EASY:
        return v2.alpha_easy
    if level is SelfEval.GOOD:
        return v2.alpha_good
    # AGAIN on a correct answer is treated as hard
    return v2.alpha_hard


def response_time_factor(verdict: TimingVerdict | None, settings: Settings) -> float:
    """
    Stability bonus for a fluent answer.

    Only SOP_OK answers earn it; the bonus is full at ratio <= rt_fast and
    fades linearly to nothing at ratio >= rt_slow.
    """
    if verdict is None or verdict.timing_class is not TimingClass.SOP_OK:
        return 1.0
    v2 = settings.srs_v2
    fraction = clamp((v2.rt_slow - verdict.ratio) / (v2.rt_slow - v2.rt_fast), 0.0, 1.0)
    return 1.0 + v2.k_rt_bonus * fraction


def scheduled_interval_days(item: StudyItem) -> float | None:
    """Interval the item was last scheduled with (None before first review)."""
    if item.last_reviewed_at is None or item.next_review_date is None:
        return None
    return max(0.0, days_between(item.last_reviewed_at, item.next_review_date))


def next_interval_days(stability: float, hot_topic: bool, settings: Settings) -> float:
    """Days until retrievability would fall to r_target, within bounds."""
    v2 = settings.srs_v2
    interval = max(v2.min_interval_days, interval_for_target(stability, settings.srs.r_target))
    if hot_topic:
        interval = min(interval, v2.max_hot_days)
    return interval


def calculate_new_srs_state(
    item: StudyItem,
    is_correct: bool,
    eval_level: int | SelfEval,
    elapsed_sec: float,
    settings: Settings | None = None,
    *,
    timing: TimingVerdict | None = None,
    now: datetime | None = None,
    diagnostics: dict[str, Any] | None = None,
) -> SrsPatch:
    """
    Compute the SRS patch for one attempt.

    Args:
        item: Item as it was before the attempt
        is_correct: Whether the learner answered correctly
        eval_level: Self-reported difficulty 0-3 (again/hard/good/easy)
        elapsed_sec: Response time in seconds
        settings: Engine settings (default: get_settings())
        timing: Verdict from the TimingClassifier, if one was run
        now: Review timestamp (default: now, UTC)
        diagnostics: Opaque payload stored on the attempt unchanged

    Returns:
        SrsPatch with the new state and the attempt to append

    Raises:
        NonFiniteStabilityError: if the new stability is NaN or infinite
    """
    settings = settings or get_settings()
    v2 = settings.srs_v2
    now = ensure_aware(now) or utc_now()
    level = SelfEval(int(clamp(int(eval_level), 0, 3)))

    current_s = item.stability if item.stability and item.stability > 0 else v2.S_default_days
    mastery = clamp(item.mastery_score or 0.0, 0.0, 100.0)
    rushed_guess = (
        timing is not None
        and timing.is_rush
        and is_guarded(item.facets().question_type, settings)
    )

    if is_correct:
        r_before = item_retrievability(item, now) if item.total_attempts > 0 else 1.0
        alpha = v2.alpha_hard if rushed_guess else _alpha_for(level, settings)
        growth = 1.0 + alpha * (1.0 + 2.0 * (1.0 - r_before))

        gap_factor = 1.0
        scheduled = scheduled_interval_days(item)
        if scheduled is not None and elapsed_days(item, now) > scheduled:
            gap_factor += v2.k_long_gap

        grown = current_s * growth * response_time_factor(timing, settings) * gap_factor
        new_s = max(current_s, min(grown, v2.cap_S_days))

        eval_weight = settings.mastery.eval_weights.get(int(level), 1.0)
        gain = min(settings.mastery.max_gain_per_session, (100.0 - mastery) * settings.mastery.gain_rate * eval_weight)
        if rushed_guess:
            gain *= 0.5
        new_mastery = mastery + gain

        srs_stage = item.srs_stage + 1
        correct_streak = item.correct_streak + 1
        lapses = item.lapses
        recent_error = 0
    else:
        new_s = current_s * v2.gamma_fail
        new_mastery = mastery * (1.0 - settings.mastery.error_penalty_level)
        srs_stage = 0
        correct_streak = 0
        lapses = item.lapses + 1
        recent_error = 1

    if not math.isfinite(new_s):
        raise NonFiniteStabilityError(item.id, new_s)

    new_mastery = clamp(new_mastery, 0.0, 100.0)
    interval = next_interval_days(new_s, item.hot_topic, settings)
    next_review = add_days(now, interval)

    attempt = Attempt(
        timestamp=now,
        was_correct=is_correct,
        mastery_after=new_mastery,
        stability_after=new_s,
        elapsed_sec=max(0.0, float(elapsed_sec)),
        self_eval_level=int(level),
        timing_class=timing.timing_class if timing else None,
        grade=level.grade,
        target_sec=timing.reference_sec if timing else settings.target_sec_default,
        diagnostics=dict(diagnostics or {}),
    )

    logger.debug(
        f"SRS update {item.id}: correct={is_correct} eval={level.grade} "
        f"S {current_s:.2f}->{new_s:.2f} M {mastery:.1f}->{new_mastery:.1f} "
        f"next in {interval:.2f}d"
    )

    return SrsPatch(
        stability=new_s,
        mastery_score=new_mastery,
        next_review_date=next_review,
        last_reviewed_at=now,
        interval_days=interval,
        srs_stage=srs_stage,
        correct_streak=correct_streak,
        lapses=lapses,
        last_was_correct=is_correct,
        recent_error=recent_error,
        attempt=attempt,
    )


def apply_srs_patch(item: StudyItem, patch: SrsPatch) -> StudyItem:
    """Return a new snapshot of ``item`` with the patch and its attempt applied."""
    return replace(
        item,
        **patch.to_dict(),
        total_attempts=item.total_attempts + 1,
        attempt_history=tuple(item.attempt_history) + (patch.attempt,),
    )
