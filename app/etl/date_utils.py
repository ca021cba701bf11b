from __future__ import annotations

import re
import time
from datetime import datetime
from typing import Optional

_PORTAL_DATE = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:\s+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_CANONICAL_DATE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})(?:\s+(\d{2}):(\d{2})(?::(\d{2}))?)?$"
)
_ISO_DAY = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$")


def _valid_calendar(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> bool:
    try:
        datetime(year, month, day, hour, minute, second)
    except ValueError:
        return False
    return True


def parse_publication_date(value: Optional[str]) -> Optional[str]:
    """Return the canonical ``YYYY-MM-DD HH:MM[:SS]`` form of a portal date.

    The portal renders ``dd/mm/yyyy[ HH:MM[:SS]]``. The time part is kept as
    given; a missing time becomes ``00:00:00``. Values already in canonical
    form are returned unchanged. Anything else normalises to ``None``.
    """

    candidate = " ".join((value or "").split())
    if not candidate:
        return None

    canonical = _CANONICAL_DATE.match(candidate)
    if canonical:
        year, month, day = (int(canonical.group(i)) for i in (1, 2, 3))
        hour = int(canonical.group(4) or 0)
        minute = int(canonical.group(5) or 0)
        second = int(canonical.group(6) or 0)
        if not _valid_calendar(year, month, day, hour, minute, second):
            return None
        if canonical.group(4) is None:
            return f"{candidate} 00:00:00"
        return candidate

    match = _PORTAL_DATE.match(candidate)
    if not match:
        return None

    day, month, year = int(match.group(1)), int(match.group(2)), int(match.group(3))
    hour_raw, minute_raw, second_raw = match.group(4), match.group(5), match.group(6)

    if hour_raw is None:
        if not _valid_calendar(year, month, day):
            return None
        return f"{year:04d}-{month:02d}-{day:02d} 00:00:00"

    hour, minute = int(hour_raw), int(minute_raw)
    second = int(second_raw) if second_raw is not None else 0
    if not _valid_calendar(year, month, day, hour, minute, second):
        return None

    time_part = f"{hour:02d}:{minute:02d}"
    if second_raw is not None:
        time_part += f":{second:02d}"
    return f"{year:04d}-{month:02d}-{day:02d} {time_part}"


def to_portal_date(value: Optional[str]) -> Optional[str]:
    """Convert ``YYYY-MM-DD`` (or an existing ``dd/mm/yyyy``) to ``dd/mm/yyyy``."""

    candidate = (value or "").strip()
    if not candidate:
        return None

    iso = _ISO_DAY.match(candidate)
    if iso:
        year, month, day = int(iso.group(1)), int(iso.group(2)), int(iso.group(3))
        if not _valid_calendar(year, month, day):
            return None
        return f"{day:02d}/{month:02d}/{year:04d}"

    portal = _PORTAL_DATE.match(candidate)
    if portal and portal.group(4) is None:
        day, month, year = int(portal.group(1)), int(portal.group(2)), int(portal.group(3))
        if not _valid_calendar(year, month, day):
            return None
        return f"{day:02d}/{month:02d}/{year:04d}"

    return None


def default_range_for_year(year: str) -> tuple[str, str]:
    """Return the portal's full-year publication range for *year*."""

    return f"01/01/{year}", f"31/12/{year}"


def utc_now_iso() -> str:
    """Return a UTC timestamp formatted as ISO8601 without fractional seconds."""

    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


__all__ = [
    "parse_publication_date",
    "to_portal_date",
    "default_range_for_year",
    "utc_now_iso",
]
