"""Timestamp utilities for GeoMapAgent.

All persisted timestamps are UTC ISO-8601 strings. Route every stored
timestamp through parse_timestamp() before comparing or ageing it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from dateutil import parser as dateutil_parser


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string.

    Naive datetimes are assumed to already be in UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat()


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return to_iso(utc_now())


def parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings with or without offsets (a trailing ``Z`` from
    browser-generated stores included).

    Args:
        raw: Timestamp string, or None.

    Returns:
        Aware UTC datetime, or None when the value is empty or unparseable.
    """
    if not raw:
        return None
    try:
        parsed = dateutil_parser.isoparse(str(raw).strip())
    except (ValueError, OverflowError, TypeError):
        try:
            parsed = dateutil_parser.parse(str(raw))
        except (ValueError, OverflowError, TypeError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def days_since(raw: Optional[str], now: datetime) -> Optional[int]:
    """Whole days elapsed between a stored timestamp and ``now``.

    Args:
        raw: Stored timestamp string.
        now: Reference time (aware).

    Returns:
        Non-negative whole days, or None if the timestamp cannot be parsed.
    """
    moment = parse_timestamp(raw)
    if moment is None:
        return None
    return max(0, (now - moment).days)


def epoch_millis(moment: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch, used to build sortable identifiers."""
    moment = moment or utc_now()
    return int(moment.timestamp() * 1000)
