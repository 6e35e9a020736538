"""
Retrievability Model.

Exponential forgetting curve whose time constant is the item's stability:

    R(t) = exp(-t / S)

and the blended "current domain" shown to the learner:

    D = 0.7 * mastery + 0.3 * 100 * R

An item with high mastery that is long overdue still shows a clearly reduced
domain, without collapsing to zero.
"""

from __future__ import annotations

import math
from datetime import datetime

from config import Settings
from studyengine.core.clock import days_between, utc_now
from studyengine.core.models import StudyItem

STABILITY_EPSILON = 1e-3  # Days

MASTERY_WEIGHT = 0.7
RECALL_WEIGHT = 0.3


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def retrievability(stability_days: float, elapsed_days: float) -> float:
    """
    Probability of recall after ``elapsed_days`` (0-1].

    Args:
        stability_days: Forgetting time constant; clamped to a small floor
        elapsed_days: Days since the last review; <= 0 means just reviewed

    Returns:
        Retrievability in (0, 1]
    """
    if elapsed_days <= 0:
        return 1.0
    return math.exp(-elapsed_days / max(stability_days, STABILITY_EPSILON))


def current_domain(mastery_score: float, r: float) -> float:
    """Blend long-term mastery with instantaneous recall (0-100)."""
    mastery = clamp(mastery_score, 0.0, 100.0)
    recall = clamp(r, 0.0, 1.0)
    return clamp(MASTERY_WEIGHT * mastery + RECALL_WEIGHT * 100.0 * recall, 0.0, 100.0)


def interval_for_target(stability_days: float, target_r: float) -> float:
    """
    Days until retrievability falls to ``target_r``.

    Inverse of the forgetting curve: t = -S * ln(target_R).
    """
    return -max(stability_days, STABILITY_EPSILON) * math.log(target_r)


def elapsed_days(item: StudyItem, now: datetime | None = None) -> float:
    """Days since the last review (0 if never reviewed)."""
    if item.last_reviewed_at is None:
        return 0.0
    return max(0.0, days_between(item.last_reviewed_at, now or utc_now()))


def item_retrievability(item: StudyItem, now: datetime | None = None) -> float:
    """
    Current retrievability of an item.

    Never-reviewed items have no memory trace yet and report 0.
    """
    if item.last_reviewed_at is None or item.total_attempts == 0:
        return 0.0
    return retrievability(item.stability, elapsed_days(item, now))


def calculate_current_domain(
    item: StudyItem,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> float:
    """Current domain of an item; 0 before its first attempt."""
    if item.total_attempts == 0:
        return 0.0
    return current_domain(item.mastery_score, item_retrievability(item, now))
