"""
Progress summaries over item collections.

Read-only helpers for dashboards: aggregated mastery/domain, review status
buckets, mastery tiers and recall urgency.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable

from config import Settings
from studyengine.core.clock import days_between, ensure_aware, utc_now
from studyengine.core.models import StudyItem
from studyengine.study.retrievability import calculate_current_domain, item_retrievability

OVERDUE_GRACE_HOURS = 6
NOW_WINDOW_HOURS = 12
GOLD_WINDOW_HOURS = 12


class ReviewStatus(str, Enum):
    OVERDUE = "OVERDUE"  # More than the grace period late
    NOW = "NOW"
    TODAY = "TODAY"
    FUTURE = "FUTURE"


class MasteryTier(str, Enum):
    GOLD = "GOLD"
    SILVER = "SILVER"
    BRONZE = "BRONZE"


class Urgency(str, Enum):
    CRITICAL = "CRITICAL"
    ALERT = "ALERT"
    STABLE = "STABLE"


@dataclass
class AggregatedStats:
    total: int = 0
    attempted: int = 0
    avg_mastery: float = 0.0
    avg_domain: float = 0.0
    error_count: int = 0
    critical_count: int = 0


def compute_aggregated_stats(
    items: Iterable[StudyItem],
    settings: Settings | None = None,
    now: datetime | None = None,
) -> AggregatedStats:
    """Averages are taken over attempted items only."""
    now = ensure_aware(now) or utc_now()
    stats = AggregatedStats()
    mastery_sum = 0.0
    domain_sum = 0.0

    for item in items:
        stats.total += 1
        if item.total_attempts > 0:
            stats.attempted += 1
            mastery_sum += item.mastery_score or 0.0
            domain_sum += calculate_current_domain(item, settings, now)
            if not item.last_was_correct:
                stats.error_count += 1
        if item.is_critical:
            stats.critical_count += 1

    if stats.attempted:
        stats.avg_mastery = mastery_sum / stats.attempted
        stats.avg_domain = domain_sum / stats.attempted
    return stats


def calculate_aggregate_domain(
    items: Iterable[StudyItem],
    settings: Settings | None = None,
    now: datetime | None = None,
) -> int:
    """Rounded average domain (0 for an empty collection)."""
    return round(compute_aggregated_stats(items, settings, now).avg_domain)


def review_status(next_review_date: datetime | None, now: datetime | None = None) -> ReviewStatus:
    """Bucket a due date relative to now. A missing date counts as overdue."""
    if next_review_date is None:
        return ReviewStatus.OVERDUE
    now = ensure_aware(now) or utc_now()
    due = ensure_aware(next_review_date)
    diff_hours = days_between(now, due) * 24

    if diff_hours < -OVERDUE_GRACE_HOURS:
        return ReviewStatus.OVERDUE
    if diff_hours <= NOW_WINDOW_HOURS:
        return ReviewStatus.NOW
    if due.date() == now.date():
        return ReviewStatus.TODAY
    return ReviewStatus.FUTURE


def mastery_tier(mastery: float) -> MasteryTier:
    if mastery >= 85:
        return MasteryTier.GOLD
    if mastery >= 70:
        return MasteryTier.SILVER
    return MasteryTier.BRONZE


def urgency(item: StudyItem, now: datetime | None = None) -> Urgency:
    r = item_retrievability(item, now)
    if r < 0.7:
        return Urgency.CRITICAL
    if r < 0.85:
        return Urgency.ALERT
    return Urgency.STABLE


def is_gold_window(next_review_date: datetime | None, now: datetime | None = None) -> bool:
    """Within +/- 12 hours of the due time."""
    if next_review_date is None:
        return False
    now = ensure_aware(now) or utc_now()
    return abs(days_between(next_review_date, now) * 24) <= GOLD_WINDOW_HOURS
