# utils/date_utils.py
from datetime import date, datetime
from typing import Optional

from lessonplanner.core.constants import DAYS


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` string. Returns None when blank or malformed."""
    if not value or not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def weekday_name(value) -> Optional[str]:
    """
    Arabic day-of-week name for a date or ``YYYY-MM-DD`` string.

    `DAYS` starts on Sunday while `date.weekday()` starts on Monday (0), so
    the index is shifted by one.
    """
    if isinstance(value, date):
        d = value
    else:
        d = parse_iso_date(value)
    if d is None:
        return None
    return DAYS[(d.weekday() + 1) % 7]


def today_iso() -> str:
    return date.today().isoformat()
