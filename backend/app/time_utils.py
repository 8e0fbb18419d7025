"""Clock helpers shared by match sessions and the printable report.

Every timestamp the scorekeeper produces is timezone-aware UTC; the
report page renders them as date and 24h clock strings.
"""

from __future__ import annotations

from datetime import datetime, timezone

REPORT_DATE_FORMAT = "%Y-%m-%d"
REPORT_TIME_FORMAT = "%H:%M"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_utc(value: datetime | None) -> datetime | None:
    """Convert ``value`` to UTC, treating naive datetimes as UTC already."""
    if value is None:
        return None
    if value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def report_date(value: datetime | None) -> str:
    value = coerce_utc(value)
    return value.strftime(REPORT_DATE_FORMAT) if value else ""


def report_time(value: datetime | None) -> str:
    value = coerce_utc(value)
    return value.strftime(REPORT_TIME_FORMAT) if value else ""
