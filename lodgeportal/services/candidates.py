"""
Candidate review window helpers.
"""
from datetime import date, datetime, time, timedelta, timezone
from math import ceil
from typing import Optional

from lodgeportal.core.config import settings
from lodgeportal.models.candidate import Candidate

ONE_DAY = timedelta(days=1)


def _end_of_window(end_date: date) -> datetime:
    # Review windows close at midnight UTC at the start of end_date
    return datetime.combine(end_date, time.min, tzinfo=timezone.utc)


def days_left(end_date: Optional[date], now: Optional[datetime] = None) -> int:
    """Whole days until the window closes, rounded up, never negative."""
    if end_date is None:
        return 0
    now = now or datetime.now(timezone.utc)
    remaining = _end_of_window(end_date) - now
    return max(0, ceil(remaining / ONE_DAY))


def is_open(candidate: Candidate, now: Optional[datetime] = None) -> bool:
    """Candidates without an end date stay listed."""
    if candidate.end_date is None:
        return True
    now = now or datetime.now(timezone.utc)
    return _end_of_window(candidate.end_date) > now


def default_window(today: Optional[date] = None) -> tuple[date, date]:
    today = today or datetime.now(timezone.utc).date()
    return today, today + timedelta(days=settings.CANDIDATE_REVIEW_DAYS)
