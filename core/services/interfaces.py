"""Core service interfaces.

The decision engine talks to the outside world only through these protocols,
so tests can substitute in-memory fakes and the exiftool adapter stays an
implementation detail of the infrastructure layer.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta
from pathlib import Path
from typing import Protocol

from core.models import PhotoTags, Track


class MetadataTool(Protocol):
    """Reads and writes photo metadata, including GPS interpolation from tracks."""

    def read_tags(self, files: Sequence[Path]) -> list[PhotoTags]:
        """Return capture time, stored offset and GPS presence for each file."""
        raise NotImplementedError

    def missing_gps(self, files: Sequence[Path]) -> list[Path]:
        """Return the subset of `files` without GPS coordinates."""
        raise NotImplementedError

    def shift_timestamps(self, files: Sequence[Path], delta: timedelta) -> None:
        """Shift DateTimeOriginal, CreateDate and ModifyDate by `delta`."""
        raise NotImplementedError

    def write_offset_tags(self, files: Sequence[Path], offset: int) -> None:
        """Write OffsetTime, OffsetTimeOriginal and OffsetTimeDigitized."""
        raise NotImplementedError

    def geotag(
        self,
        files: Sequence[Path],
        track: Path,
        sync_delta: timedelta,
        offset: int | None,
        only_if_missing: bool,
    ) -> int:
        """Geotag `files` against `track`; return the tool-reported update count.

        The count is informational only. Callers judge success by rescanning
        with `missing_gps`, which is authoritative.

        Args:
            files: Images to tag.
            track: GPX file.
            sync_delta: Track UTC time + sync_delta = photo wall clock.
            offset: Zone used to read photo wall clocks; None for per-file tags.
            only_if_missing: Restrict writes to files without GPS.
        """
        raise NotImplementedError


class TrackReader(Protocol):
    """Extracts a track's UTC span from its first and last timestamps."""

    def read_track(self, path: Path) -> Track:
        raise NotImplementedError
