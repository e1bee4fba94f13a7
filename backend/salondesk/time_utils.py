"""
Time helpers.

Every timestamp is stored UTC-naive. Booking times arrive as ISO-8601
strings from the front desk and leave as ISO-8601 with a trailing 'Z'.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    "2026-03-02T14:00:00Z" / "+03:00" offsets are converted to UTC-naive;
    a string without offset is taken as UTC. Blank -> None.
    """
    if value is None or not value.strip():
        return None
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """JSON form of a stored timestamp, second precision."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def settlement_date(applied_at: datetime, settlement_days: int) -> date:
    """Calendar date on which a tender is expected to settle (D+N)."""
    return (applied_at + timedelta(days=settlement_days)).date()
