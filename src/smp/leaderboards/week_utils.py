"""ISO week helpers for weekly leaderboards."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone

WEEK_KEY_PATTERN = re.compile(r"^\d{4}-W\d{2}$")


def get_week_iso(dt: datetime) -> str:
    """Get ISO week string e.g. '2026-W09'. Uses %G-W%V (ISO year + ISO week)."""
    return dt.strftime("%G-W%V")


def get_monday(dt: datetime | date) -> date:
    """Get the Monday of the ISO week containing dt."""
    d = dt.date() if isinstance(dt, datetime) else dt
    return d - timedelta(days=d.weekday())


def get_current_week_iso(now: datetime | None = None) -> str:
    if now is None:
        now = datetime.now(timezone.utc)
    return get_week_iso(now)


def is_valid_week_key(week_key: str) -> bool:
    if not WEEK_KEY_PATTERN.match(week_key):
        return False
    try:
        iso_week_to_dates(week_key)
    except ValueError:
        return False
    return True


def iso_week_to_dates(week_iso: str) -> tuple[date, date]:
    """Convert '2026-W09' to (Monday date, Sunday date).

    Uses ISO 8601: Monday is day 1 of the ISO week.
    """
    monday = datetime.strptime(week_iso + "-1", "%G-W%V-%u").date()
    sunday = monday + timedelta(days=6)
    return monday, sunday


def week_key_bounds(week_iso: str) -> tuple[datetime, datetime]:
    """Half-open UTC range ``[Monday 00:00, next Monday 00:00)`` for a week key."""
    monday, _ = iso_week_to_dates(week_iso)
    start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=7)


def calculate_percentile(rank: int, total: int) -> float:
    """Calculate percentile from rank and total participants.

    Rank 1 out of 100 → 99.0 (top 1%)
    Rank 50 out of 100 → 50.0 (median)
    Rank 100 out of 100 → 0.0 (bottom)
    """
    if total <= 0 or rank <= 0:
        return 0.0
    return round(100 - (rank / total * 100), 2)
