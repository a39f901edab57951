"""GPX time-span extraction using gpxpy."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import gpxpy
import gpxpy.gpx
from loguru import logger

from core.models import Track


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GpxTrackReader:
    """Reads a GPX file and returns a `Track` with its UTC span."""

    def read_track(self, path: Path) -> Track:
        """Return the track at `path`; span is None when no timestamp is readable."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                gpx = gpxpy.parse(f)
        except (OSError, UnicodeDecodeError, gpxpy.gpx.GPXException) as ex:
            logger.warning("Cannot read track {}: {}", path, ex)
            return Track(path=path, span=None)

        times: list[datetime] = []
        for track in gpx.tracks:
            for segment in track.segments:
                times.extend(_as_utc(p.time) for p in segment.points if p.time is not None)
        if not times:
            # Some loggers only write routes or waypoints
            for route in gpx.routes:
                times.extend(_as_utc(p.time) for p in route.points if p.time is not None)
            times.extend(_as_utc(p.time) for p in gpx.waypoints if p.time is not None)

        if not times:
            logger.warning("Track {} has no timestamps", path.name)
            return Track(path=path, span=None)
        return Track(path=path, span=(min(times), max(times)))
