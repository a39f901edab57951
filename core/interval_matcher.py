"""Overlap test between a folder's capture range and a track's time span."""

from __future__ import annotations

from datetime import datetime, timedelta

TimeRange = tuple[datetime, datetime]


class IntervalMatcher:
    """Pairwise interval test with a symmetric extension tolerance.

    When either range is unknown the matcher fails open: the track is tried
    anyway and the metadata tool decides.
    """

    def __init__(self, extension_seconds: int = 0) -> None:
        if extension_seconds < 0:
            raise ValueError(f"extension must be >= 0, got {extension_seconds}")
        self.extension_seconds = int(extension_seconds)

    def overlaps(self, folder_range: TimeRange | None, track_span: TimeRange | None) -> bool:
        return overlaps(folder_range, track_span, self.extension_seconds)


def overlaps(
    folder_range: TimeRange | None, track_span: TimeRange | None, extension_seconds: int = 0
) -> bool:
    """Return True unless `track_span` lies entirely outside the extended folder window.

    The window is ``(fmin - ext, fmax + ext)``; touching the boundary counts
    as an overlap.
    """
    if extension_seconds < 0:
        raise ValueError(f"extension must be >= 0, got {extension_seconds}")
    if folder_range is None or track_span is None:
        return True
    fmin, fmax = folder_range
    gmin, gmax = track_span
    ext = timedelta(seconds=extension_seconds)
    window_start = fmin - ext
    window_end = fmax + ext
    return not (gmax < window_start or gmin > window_end)


def gap_seconds(folder_range: TimeRange | None, track_span: TimeRange | None) -> float:
    """Seconds between the two intervals; 0 when they overlap, inf when unknown."""
    if folder_range is None or track_span is None:
        return float("inf")
    fmin, fmax = folder_range
    gmin, gmax = track_span
    if gmax < fmin:
        return (fmin - gmax).total_seconds()
    if gmin > fmax:
        return (gmin - fmax).total_seconds()
    return 0.0
