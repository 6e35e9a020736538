"""
Micro-Spacing Scheduler.

After a weak item is failed, schedule a short burst of same-day/next-day
re-exposures (e.g. 0h, 6h, 18h after the failure) ahead of the normal
multi-day interval. The scheduler does not touch the item's
next_review_date; reconcile_next_review() picks the soonest checkpoint when
the caller wants a single due time.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Sequence

from config import Settings, get_settings
from studyengine.core.clock import ensure_aware, utc_now
from studyengine.core.models import StudyItem


def schedule_micro_spacing(
    failure_ts: datetime,
    hours: Sequence[float] | None = None,
    settings: Settings | None = None,
) -> list[datetime]:
    """
    Re-exposure timestamps after a failure.

    Args:
        failure_ts: When the item was failed
        hours: Ordered hour offsets (default: exam_mode.micro_spaced_hours)
        settings: Engine settings

    Returns:
        failure_ts + offset for each offset, in the configured order
    """
    if hours is None:
        hours = (settings or get_settings()).exam_mode.micro_spaced_hours
    base = ensure_aware(failure_ts)
    return [base + timedelta(hours=h) for h in hours]


def is_weak(item: StudyItem, settings: Settings | None = None) -> bool:
    """Whether an item is weak enough to deserve micro-spacing."""
    floors = (settings or get_settings()).micro_spacing
    return item.stability < floors.stability_floor_days or item.mastery_score < floors.mastery_floor


def reconcile_next_review(
    next_review_date: datetime,
    micro_schedule: Sequence[datetime],
    now: datetime | None = None,
) -> datetime:
    """Soonest upcoming checkpoint, falling back to the regular review date."""
    now = ensure_aware(now) or utc_now()
    upcoming = [ensure_aware(ts) for ts in micro_schedule if ensure_aware(ts) >= now]
    candidates = upcoming + [ensure_aware(next_review_date)]
    return min(candidates)
