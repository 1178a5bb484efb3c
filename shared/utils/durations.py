"""
Human-readable durations and timezone-aware timestamps for announcements.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shared.logging.logger import get_logger

log = get_logger("shared.utils.durations")

_UNITS = (
    ("day", 86400),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)
_UNIT_INDEX = {name: idx for idx, (name, _) in enumerate(_UNITS)}

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


def humanize_duration(
    value: timedelta,
    *,
    precision: int = 2,
    max_unit: str = "hour",
    min_unit: str = "second",
) -> str:
    """
    Render a duration as e.g. "2 hours 5 minutes".

    Units above max_unit fold into max_unit (so 26h stays "26 hours"),
    units below min_unit are dropped. Negative durations render as zero.
    """
    units = _UNITS[_UNIT_INDEX[max_unit]:_UNIT_INDEX[min_unit] + 1]
    remaining = max(int(value.total_seconds()), 0)

    parts = []
    for name, size in units:
        amount, remaining = divmod(remaining, size)
        if amount:
            parts.append(f"{amount} {name}{'' if amount == 1 else 's'}")

    if not parts:
        return f"0 {units[-1][0]}s"
    return " ".join(parts[:precision])


def resolve_timezone(name: Optional[str]):
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        log.warning(f"Unknown timezone override '{name}'; using UTC")
        return timezone.utc


def format_local(value: datetime, tz_name: Optional[str] = None) -> Tuple[str, str]:
    """Return (formatted timestamp, timezone abbreviation)."""
    local = value.astimezone(resolve_timezone(tz_name))
    return local.strftime(TIMESTAMP_FORMAT), local.tzname() or "UTC"
