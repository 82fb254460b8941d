from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from ..config import DISPLAY_UTC_OFFSET_HOURS

UNKNOWN_RESET_TIME = "unknown"
DISPLAY_FORMAT = "%m-%d %H:%M"

# fromisoformat before 3.11 only takes 3 or 6 fractional digits
_FRACTION_RE = re.compile(r"(:\d{2})\.(\d+)")


def _pad_fraction(match: "re.Match[str]") -> str:
    return f"{match.group(1)}.{match.group(2)[:6].ljust(6, '0')}"


def _parse_timestamp(raw: Any) -> datetime:
    if isinstance(raw, bool):
        raise TypeError("boolean is not a timestamp")
    if isinstance(raw, (int, float)):
        return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
    if not isinstance(raw, str) or not raw.strip():
        raise TypeError(f"unsupported timestamp: {raw!r}")

    value = raw.strip()
    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"
    value = _FRACTION_RE.sub(_pad_fraction, value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def localize(raw: Any, offset_hours: int = DISPLAY_UTC_OFFSET_HOURS) -> str:
    """Render a UTC reset timestamp as ``MM-DD HH:MM`` in the display zone.

    Accepts ISO-8601 strings or a millisecond epoch. Anything unparseable
    becomes ``UNKNOWN_RESET_TIME``.
    """
    try:
        instant = _parse_timestamp(raw)
        local = instant.astimezone(timezone(timedelta(hours=offset_hours)))
    except (TypeError, ValueError, OverflowError, OSError):
        return UNKNOWN_RESET_TIME
    return local.strftime(DISPLAY_FORMAT)
