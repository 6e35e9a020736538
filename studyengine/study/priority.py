"""
Priority Engine.

Two independent, relatively-ordered scores per item:

priority_spaced - urgency under steady review. Items whose retrievability
    already fell below r_target carry an overdue bonus larger than every
    flag weight combined, so they always outrank items that are not due.
    Near-due items (r_target <= R < r_near) get a smaller bonus.

priority_exam - expected failure risk on exam day, (1 - R_proj), scaled by
    the same importance weights. Due dates play no part.

Ties on the spaced score are broken by ascending current domain.
"""

from __future__ import annotations

from dataclasses import dataclass

from config import Settings, get_settings
from studyengine.core.models import StudyItem


@dataclass(frozen=True)
class ImportanceFlags:
    """Caller-assigned importance signals for one item."""

    hot: bool = False
    fundamental: bool = False
    critical: bool = False
    recent_error: bool = False

    @classmethod
    def from_item(cls, item: StudyItem) -> ImportanceFlags:
        return cls(
            hot=bool(item.hot_topic),
            fundamental=bool(item.is_fundamental),
            critical=bool(item.is_critical),
            recent_error=item.has_recent_error,
        )


def low_stability_score(stability: float, settings: Settings) -> float:
    """1 at zero stability, 0 at or above the critical stability floor."""
    floor = settings.queue.critical_stability_floor_days
    return max(0.0, 1.0 - stability / floor)


def importance_bonus(flags: ImportanceFlags, stability: float, settings: Settings) -> float:
    """Sum of the additive importance weights that apply."""
    w = settings.srs.weights
    bonus = 0.0
    if flags.hot:
        bonus += w.is_hot
    if flags.fundamental:
        bonus += w.is_fundamental
    if flags.critical:
        bonus += w.is_critical
    if flags.recent_error:
        bonus += w.recent_error
    bonus += w.low_s * low_stability_score(stability, settings)
    return bonus


def priority_spaced(
    r_now: float,
    stability: float,
    flags: ImportanceFlags,
    settings: Settings | None = None,
) -> float:
    """Urgency to protect retrievability under steady review."""
    settings = settings or get_settings()
    srs = settings.srs
    score = 1.0 - r_now
    if r_now < srs.r_target:
        score += 1.0 + srs.weights.total + (srs.r_target - r_now)
    elif r_now < srs.r_near:
        score += srs.near_due_bonus
    return score + importance_bonus(flags, stability, settings)


def priority_exam(
    r_proj: float,
    stability: float,
    flags: ImportanceFlags,
    settings: Settings | None = None,
) -> float:
    """Risk of forgetting by exam day, weighted by importance."""
    settings = settings or get_settings()
    return (1.0 - r_proj) * (1.0 + importance_bonus(flags, stability, settings))


def spaced_sort_key(metrics) -> tuple[float, float]:
    """Sort key: highest spaced priority first, then lowest domain."""
    return (-metrics.priority_spaced, metrics.d)


def exam_sort_key(metrics) -> tuple[float, float]:
    return (-metrics.priority_exam, metrics.d)
