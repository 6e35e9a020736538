"""Date helpers. All engine timestamps are timezone-aware UTC."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

DAY_SECONDS = 86400.0


def utc_now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime | str | None) -> datetime | None:
    """Ensure a datetime is timezone-aware; naive values are taken as UTC."""
    if dt is None:
        return None
    if isinstance(dt, str):
        dt = datetime.fromisoformat(dt.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative if end is earlier)."""
    return (ensure_aware(end) - ensure_aware(start)).total_seconds() / DAY_SECONDS


def add_days(dt: datetime, days: float) -> datetime:
    return ensure_aware(dt) + timedelta(days=days)
