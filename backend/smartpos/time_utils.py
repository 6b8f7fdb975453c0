from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Parse 'YYYY-MM-DD'. Raises ValueError on malformed input."""
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None
    return date.fromisoformat(s)


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


def shop_zone(name: str | None) -> ZoneInfo:
    try:
        return ZoneInfo(name or "UTC")
    except ZoneInfoNotFoundError:
        raise ValueError(f"unknown timezone: {name}")


def local_midnight_utc(day: date, tz: ZoneInfo) -> datetime:
    """UTC-naive instant of 00:00 local time on `day`."""
    local = datetime.combine(day, time.min).replace(tzinfo=tz)
    return local.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_window(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Half-open [start, end) UTC-naive window covering one local calendar day.

    DST days are 23 or 25 hours long; both ends are computed from local midnight.
    """
    return local_midnight_utc(day, tz), local_midnight_utc(day + timedelta(days=1), tz)


def local_today(tz: ZoneInfo, now: datetime | None = None) -> date:
    now = now or utcnow()
    return now.replace(tzinfo=timezone.utc).astimezone(tz).date()


def inclusive_date_range(start: date, end: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Window for an inclusive [start 00:00:00, end 23:59:59.999999] local range.

    Returned as a half-open UTC-naive [start, end_exclusive) pair.
    """
    start_dt, _ = local_day_window(start, tz)
    _, end_dt = local_day_window(end, tz)
    return start_dt, end_dt
