"""Local-civil date helpers.

Expiry dates are stored as ``YYYY-MM-DD`` text with no timezone. They name a
day on the user's calendar, not a UTC instant, so every comparison in the
product goes through :func:`parse_local_date` and works on ``datetime.date``
values. Timestamps (``created_at``) are normalised to aware local datetimes
so that naive and offset-bearing values can be compared with each other.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta

_ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")
_ISO_DATETIME = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}[Tt ].+")


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into a timezone-aware local datetime.

    Naive values are taken as local time. Returns None for anything that
    cannot be parsed.

    Raises:
        TypeError: If *value* is neither a string, a datetime nor None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # fromisoformat() only understands "Z" from Python 3.11
        if text[-1] in "Zz":
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        raise TypeError(f"timestamp must be str or datetime, not {type(value).__name__}")

    try:
        return dt.astimezone()
    except (OverflowError, OSError, ValueError):
        return None


def parse_local_date(value: str | date | None) -> date | None:
    """Parse a date string as a local calendar date.

    ``YYYY-MM-DD`` is read field by field, never through an instant, so the
    result does not depend on the host timezone. ISO-8601 date-times
    (``YYYY-MM-DD`` then ``T`` or a space and a time) are converted to the
    local date they fall on. Anything else, including compact and week
    dates, is malformed.

    Returns:
        The parsed date, or None when the value is empty or malformed.

    Raises:
        TypeError: If *value* is neither a string, a date nor None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        ts = parse_timestamp(value)
        return ts.date() if ts else None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise TypeError(f"date must be str or date, not {type(value).__name__}")

    text = value.strip()
    if _ISO_DATE.fullmatch(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            # e.g. 2024-02-30
            return None

    if not _ISO_DATETIME.fullmatch(text):
        return None
    ts = parse_timestamp(text)
    return ts.date() if ts else None


def local_date_string(d: date | datetime | None) -> str:
    """Return *d* as ``YYYY-MM-DD`` in local time, or "" if it is missing."""
    if d is None:
        return ""
    if isinstance(d, datetime):
        parsed = parse_local_date(d)
        if parsed is None:
            return ""
        d = parsed
    return f"{d.year:04d}-{d.month:02d}-{d.day:02d}"


def format_date_for_display(value: str | date | None) -> str:
    """Format a date as ``YYYY/MM/DD``.

    Well-formed ``YYYY-MM-DD`` strings are converted by text substitution
    only. Returns "" for empty or invalid input.
    """
    if isinstance(value, str) and _ISO_DATE.fullmatch(value):
        if parse_local_date(value) is None:
            return ""
        return value.replace("-", "/")

    d = parse_local_date(value)
    if d is None:
        return ""
    return f"{d.year:04d}/{d.month:02d}/{d.day:02d}"


def today() -> date:
    """Return the current local calendar date."""
    return date.today()


def future_date(days: int, base: date | None = None) -> str:
    """Return the local date *days* after *base* (default: today) as text."""
    start = base if base is not None else today()
    return local_date_string(start + timedelta(days=days))
