from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Optional


DEFAULT_DURATION_SECONDS = 900

_DURATION_RE = re.compile(r"^(\d+)([smhd])$", re.IGNORECASE)
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(seconds: int | float) -> datetime:
    """Unix timestamp -> naive UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" or "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
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
        return dt.replace(tzinfo=None)

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


def duration_to_seconds(value: str | int | None) -> int:
    """
    Convert a TTL setting such as "15m", "12h" or "7d" into seconds.

    A bare number is taken as seconds. Anything unparseable falls back
    to DEFAULT_DURATION_SECONDS.
    """
    if value is None:
        return DEFAULT_DURATION_SECONDS
    if isinstance(value, int):
        return value if value > 0 else DEFAULT_DURATION_SECONDS

    s = str(value).strip()
    match = _DURATION_RE.match(s)
    if not match:
        try:
            seconds = int(float(s))
        except (ValueError, OverflowError):
            return DEFAULT_DURATION_SECONDS
        return seconds if seconds > 0 else DEFAULT_DURATION_SECONDS

    seconds = int(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
    return seconds or DEFAULT_DURATION_SECONDS
