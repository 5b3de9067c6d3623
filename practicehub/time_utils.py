"""Utilities for working with timestamps in UTC and the practice time zone."""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_PRACTICE_TIMEZONE = "America/New_York"

DateLike = Union[date, datetime]


def utc_now() -> datetime:
    """Return the current time as a timezone-aware ``datetime`` in UTC."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalise ``dt`` to a timezone-aware UTC ``datetime``.

    SQLite hands back naive values for ``DateTime(timezone=True)`` columns, so
    naive input is assumed to already be UTC.
    """

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_utc(dt: Optional[datetime]) -> Optional[str]:
    """Return ``dt`` as ISO 8601 text with a ``Z`` suffix."""

    if dt is None:
        return None
    text = ensure_utc(dt).isoformat()
    if text.endswith("+00:00"):
        return text[:-6] + "Z"
    return text


def _practice_zone(tz_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or DEFAULT_PRACTICE_TIMEZONE)
    except ZoneInfoNotFoundError:
        return ZoneInfo(DEFAULT_PRACTICE_TIMEZONE)


def format_practice_date(
    value: Optional[DateLike],
    tz_name: Optional[str] = None,
    *,
    fmt: str = "%B %d, %Y",
) -> Optional[str]:
    """Format ``value`` as a long date in the practice time zone.

    Plain ``date`` values (birth dates) carry no time component and are
    formatted as-is.
    """

    if value is None:
        return None
    if not isinstance(value, datetime):
        return value.strftime(fmt)
    local = ensure_utc(value).astimezone(_practice_zone(tz_name))
    return local.strftime(fmt)


__all__ = [
    "DEFAULT_PRACTICE_TIMEZONE",
    "utc_now",
    "ensure_utc",
    "isoformat_utc",
    "format_practice_date",
]
