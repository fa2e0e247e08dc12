from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

from dateutil.relativedelta import relativedelta

from .errors import InvalidArgumentError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_date(value, *, field: str = "date") -> Optional[date]:
    """
    Coerce a calendar date from a ``date``/``datetime`` or a "YYYY-MM-DD" string.

    Calendar boundaries are whole days; any time component is dropped.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return date.fromisoformat(s[:10])
        except ValueError as exc:
            raise InvalidArgumentError(f"{field} must be an ISO date (YYYY-MM-DD)") from exc
    raise InvalidArgumentError(f"{field} must be an ISO date (YYYY-MM-DD)")


def to_iso_date(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    return day + relativedelta(months=months)


def diff_in_months(start: date, end: date) -> int:
    """Number of whole months between two dates (partial months are dropped)."""
    delta = relativedelta(end, start)
    return delta.years * 12 + delta.months
