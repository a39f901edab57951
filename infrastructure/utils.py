"""Utilities for EXIF date parsing and exiftool time-shift formatting.

Parsing is best-effort and will not raise on malformed values; callers should
expect `None` when data is not available.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from loguru import logger

EXIF_DT_FMT = "%Y:%m:%d %H:%M:%S"


def parse_exif_datetime(value: Any) -> datetime | None:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` value into a naive datetime.

    Sub-second and zone suffixes some tools append are ignored.
    """
    if not value:
        return None
    val_str = str(value).strip()
    if len(val_str) < 19:
        logger.debug("Unexpected EXIF datetime: {}", val_str)
        return None
    try:
        return datetime.strptime(val_str[:19], EXIF_DT_FMT)
    except ValueError:
        try:
            return datetime.fromisoformat(val_str[:19])
        except ValueError:
            logger.debug("Invalid EXIF datetime: {}", val_str)
            return None


def format_exif_datetime(dt: datetime | None) -> str:
    """Format datetime in EXIF layout; empty string when None."""
    return dt.strftime(EXIF_DT_FMT) if dt else ""


def format_hms(delta: timedelta) -> str:
    """Format the magnitude of `delta` as ``H:M:S`` (exiftool shift syntax)."""
    total = abs(int(delta.total_seconds()))
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes}:{seconds}"


def format_signed_hms(delta: timedelta) -> str:
    """Format `delta` as ``+H:M:S`` / ``-H:M:S``; zero renders as ``+0:0:0``."""
    sign = "-" if delta < timedelta(0) else "+"
    return f"{sign}{format_hms(delta)}"


def parse_signed_hms(value: str) -> timedelta | None:
    """Parse ``+H:M:S`` / ``-H:M:S``; None when malformed."""
    s = (value or "").strip()
    if len(s) < 2 or s[0] not in "+-":
        return None
    parts = s[1:].split(":")
    if len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None
    hours, minutes, seconds = (int(p) for p in parts)
    delta = timedelta(hours=hours, minutes=minutes, seconds=seconds)
    return -delta if s[0] == "-" else delta
