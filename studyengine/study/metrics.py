"""
Per-item metrics for queue building.

CalculatedItemMetrics is ephemeral: recomputed on every query and never
persisted. calculate_metrics() is pure for a fixed ``now``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from config import Settings, get_settings
from studyengine.core.clock import days_between, ensure_aware, utc_now
from studyengine.core.models import DueReason, StudyItem
from studyengine.study.priority import ImportanceFlags, priority_exam, priority_spaced
from studyengine.study.retrievability import (
    current_domain,
    elapsed_days,
    item_retrievability,
    retrievability,
)


@dataclass(frozen=True)
class CalculatedItemMetrics:
    """An item plus its scheduling metrics at one point in time."""

    item: StudyItem
    dt: float  # Days since last review (0 if never reviewed)
    r_now: float
    d: float  # Current domain 0-100
    priority_spaced: float
    priority_exam: float
    r_proj: float  # Retrievability projected to the exam checkpoint
    due_reason: DueReason | None = None

    def with_due_reason(self, reason: DueReason) -> CalculatedItemMetrics:
        return replace(self, due_reason=reason)


def days_to_exam(settings: Settings, now: datetime) -> float:
    """Days from now to the configured exam date (0 if unset or past)."""
    if settings.exam_date is None:
        return 0.0
    return max(0.0, days_between(now, settings.exam_date))


def calculate_metrics(
    item: StudyItem,
    settings: Settings | None = None,
    now: datetime | None = None,
) -> CalculatedItemMetrics:
    """
    Compute retrievability, domain and both priorities for one item.

    Args:
        item: Item to score
        settings: Engine settings (default: get_settings())
        now: Evaluation time (default: now, UTC)

    Returns:
        CalculatedItemMetrics without a due reason
    """
    settings = settings or get_settings()
    now = ensure_aware(now) or utc_now()

    dt = elapsed_days(item, now)
    r_now = item_retrievability(item, now)
    if item.total_attempts > 0 and item.last_reviewed_at is not None:
        r_proj = retrievability(item.stability, dt + days_to_exam(settings, now))
        d = current_domain(item.mastery_score, r_now)
    else:
        r_proj = 0.0
        d = 0.0

    flags = ImportanceFlags.from_item(item)
    return CalculatedItemMetrics(
        item=item,
        dt=dt,
        r_now=r_now,
        d=d,
        priority_spaced=priority_spaced(r_now, item.stability, flags, settings),
        priority_exam=priority_exam(r_proj, item.stability, flags, settings),
        r_proj=r_proj,
    )
