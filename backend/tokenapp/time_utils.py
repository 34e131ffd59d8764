from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_now(tz_name: str) -> datetime:
    """Wall-clock 'now' in the business timezone, used for identifier periods."""
    return datetime.now(ZoneInfo(tz_name))


def month_period(dt: datetime) -> str:
    """MMYY, e.g. September 2024 -> '0924'."""
    return dt.strftime("%m%y")


def day_period(dt: datetime) -> str:
    """DDMMYY, e.g. 7 June 2024 -> '070624'."""
    return dt.strftime("%d%m%y")


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
