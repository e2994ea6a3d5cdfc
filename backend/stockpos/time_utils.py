from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


REPORT_FILTERS = ("today", "week", "month", "year", "all")

_FILTER_ALIASES = {
    "this_week": "week",
    "this_month": "month",
    "this_year": "year",
}


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "YYYY-MM-DD" is midnight UTC of that day
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


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


def normalize_report_filter(value: Optional[str]) -> str:
    """Map a report filter name (or alias) to one of REPORT_FILTERS."""
    if value is None:
        return "all"
    key = str(value).strip().lower()
    key = _FILTER_ALIASES.get(key, key)
    if key not in REPORT_FILTERS:
        raise ValueError(f"Unknown report filter: {value}. Must be one of {list(REPORT_FILTERS)}")
    return key


def period_start(
    report_filter: str,
    now: Optional[datetime] = None,
    tz_name: Optional[str] = None,
) -> Optional[datetime]:
    """
    Cutoff instant for a report filter, as a UTC-naive datetime.

    The period boundary (start of day / week / month / year) is taken in
    local time: the IANA zone `tz_name` when given, otherwise the host zone.
    Weeks start on Sunday. "all" has no cutoff and returns None.
    """
    key = normalize_report_filter(report_filter)
    if key == "all":
        return None

    now_utc = (now or utcnow()).replace(tzinfo=timezone.utc)
    local = now_utc.astimezone(ZoneInfo(tz_name)) if tz_name else now_utc.astimezone()
    start = local.replace(tzinfo=None, hour=0, minute=0, second=0, microsecond=0)

    if key == "week":
        start -= timedelta(days=(start.weekday() + 1) % 7)
    elif key == "month":
        start = start.replace(day=1)
    elif key == "year":
        start = start.replace(month=1, day=1)

    if tz_name:
        start_aware = start.replace(tzinfo=ZoneInfo(tz_name))
    else:
        start_aware = start.astimezone()
    return start_aware.astimezone(timezone.utc).replace(tzinfo=None)
