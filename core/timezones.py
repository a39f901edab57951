"""Timezone designator parsing into signed seconds from UTC."""

from __future__ import annotations

from datetime import datetime
import re
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.errors import InvalidTimezone, OffsetOutOfRange

MAX_OFFSET_HOURS = 14

_UTC_NAMES = {"Z", "UTC"}
_UTC_PREFIX_RE = re.compile(r"^UTC(?P<rest>[+-].*)$", re.IGNORECASE)
_NUMERIC_RE = re.compile(r"^(?P<sign>[+-])(?P<hours>\d{1,2})(?::(?P<minutes>\d{2}))?$")


def _numeric_offset(sign: str, hours: str, minutes: str | None, designator: str) -> int:
    h = int(hours)
    m = int(minutes or 0)
    if h > MAX_OFFSET_HOURS:
        raise OffsetOutOfRange(f"TZ hour out of range: {designator}")
    if m > 59:
        raise OffsetOutOfRange(f"TZ minute out of range: {designator}")
    total = h * 3600 + m * 60
    if total > MAX_OFFSET_HOURS * 3600:
        raise OffsetOutOfRange(f"TZ offset beyond +/-14:00: {designator}")
    return -total if sign == "-" else total


def _named_offset(name: str) -> int:
    """Resolve an IANA zone name to its offset right now.

    Every photo in a run shares this single fixed offset; DST transitions
    between shots are not taken into account.
    """
    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as ex:
        raise InvalidTimezone(f"Unknown TZ: {name}") from ex
    offset = datetime.now(zone).utcoffset()
    if offset is None:
        raise InvalidTimezone(f"Unknown TZ: {name}")
    return int(offset.total_seconds())


def parse_timezone(designator: str) -> int:
    """Parse `designator` into signed seconds east of UTC.

    Accepted forms: ``Z``, ``UTC``, ``UTC+3``, ``UTC-04:30``, ``+5``,
    ``-03:00`` and IANA names such as ``Europe/Berlin``.

    Raises:
        InvalidTimezone: when no supported form matches.
        OffsetOutOfRange: when hours exceed 14 or minutes exceed 59.
    """
    z = (designator or "").strip()
    if not z:
        raise InvalidTimezone("empty TZ")
    if z.upper() in _UTC_NAMES:
        return 0

    numeric = z
    prefixed = _UTC_PREFIX_RE.match(z)
    if prefixed:
        numeric = prefixed.group("rest")
    match = _NUMERIC_RE.match(numeric)
    if match:
        return _numeric_offset(match.group("sign"), match.group("hours"), match.group("minutes"), z)
    if prefixed:
        # "UTC+" followed by garbage is not a zone name either
        raise InvalidTimezone(f"Unknown TZ: {z}")
    return _named_offset(z)


def format_offset(seconds: int) -> str:
    """Render an offset as ``+HH:MM`` / ``-HH:MM`` (EXIF OffsetTime format)."""
    sign = "-" if seconds < 0 else "+"
    minutes_total = abs(int(seconds)) // 60
    hours, minutes = divmod(minutes_total, 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def parse_offset_tag(value: str | None) -> int | None:
    """Parse a stored EXIF ``OffsetTimeOriginal`` value; None when absent/invalid."""
    if not value:
        return None
    match = _NUMERIC_RE.match(str(value).strip())
    if not match:
        return None
    try:
        return _numeric_offset(
            match.group("sign"), match.group("hours"), match.group("minutes"), str(value)
        )
    except OffsetOutOfRange:
        return None
