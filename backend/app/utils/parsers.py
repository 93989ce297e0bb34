# app/utils/parsers.py
"""
Timestamp and email parsing utilities.

Used by:
- the parameter normalizer (startDate / endDate query parameters)
- the JIRA sync job (issue timestamps, requestor extraction)

All datetimes leaving this module are naive UTC, which is how the tables
store them.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timezone
from typing import Optional

from dateutil import parser as dtparser

# "2024-03-01" with nothing after it
_BARE_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

START_OF_DAY = time(0, 0, 0)
END_OF_DAY = time(23, 59, 59)


def to_utc_naive(dt: datetime) -> datetime:
    """
    Normalize to naive UTC.

    - If tz-aware -> convert to UTC and drop tzinfo.
    - If tz-naive -> assumed to already be UTC.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def is_bare_date(value: str) -> bool:
    return bool(_BARE_DATE_RE.match((value or "").strip()))


def parse_bound(value: str, *, end_of_day: bool) -> datetime:
    """
    Parse a date filter bound.

    A bare date is widened to the first (or last) second of that day so the
    filter includes the whole day; a date-with-time is used as given.

    Raises ValueError when the value is not a recognizable ISO date/datetime.
    """
    raw = (value or "").strip()
    if not raw:
        raise ValueError("empty date")

    if is_bare_date(raw):
        day = date.fromisoformat(raw)
        return datetime.combine(day, END_OF_DAY if end_of_day else START_OF_DAY)

    return to_utc_naive(dtparser.isoparse(raw))


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an API timestamp (e.g. JIRA's "2024-01-12T14:03:11.000+0000").

    Returns None for empty input. Raises ValueError for garbage.
    """
    if not value:
        return None
    return to_utc_naive(dtparser.parse(value))


def email_domain(email: Optional[str]) -> str:
    """Lower-cased domain part of an email address ('' when there is none)."""
    _, sep, domain = (email or "").strip().rpartition("@")
    return domain.lower() if sep else ""

