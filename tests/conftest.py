from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import json
from pathlib import Path
import subprocess

import pytest

from core.errors import MatchToolError
from core.models import PhotoTags, Track


def utc(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, timezone.utc)


@dataclass
class GeotagCall:
    files: list[Path]
    track: Path
    sync_delta: timedelta
    offset: int | None
    only_if_missing: bool


@dataclass
class FakeMetadataTool:
    """In-memory metadata tool recording every call.

    `effects` maps a track file name to the photos it can tag.
    """

    tags: dict[Path, PhotoTags] = field(default_factory=dict)
    gps: set[Path] = field(default_factory=set)
    effects: dict[str, set[Path]] = field(default_factory=dict)
    failing_tracks: set[str] = field(default_factory=set)
    fail_reads: bool = False
    geotag_calls: list[GeotagCall] = field(default_factory=list)
    missing_calls: int = 0
    shift_calls: list[tuple[list[Path], timedelta]] = field(default_factory=list)
    offset_calls: list[tuple[list[Path], int]] = field(default_factory=list)

    def read_tags(self, files: Sequence[Path]) -> list[PhotoTags]:
        if self.fail_reads:
            raise MatchToolError("read failed")
        out = []
        for f in files:
            t = self.tags.get(f, PhotoTags(path=f, datetime_original=None))
            out.append(PhotoTags(t.path, t.datetime_original, t.offset, f in self.gps))
        return out

    def missing_gps(self, files: Sequence[Path]) -> list[Path]:
        self.missing_calls += 1
        return [f for f in files if f not in self.gps]

    def shift_timestamps(self, files: Sequence[Path], delta: timedelta) -> None:
        self.shift_calls.append((list(files), delta))

    def write_offset_tags(self, files: Sequence[Path], offset: int) -> None:
        self.offset_calls.append((list(files), offset))

    def geotag(self, files, track, sync_delta, offset, only_if_missing) -> int:
        self.geotag_calls.append(GeotagCall(list(files), track, sync_delta, offset, only_if_missing))
        if track.name in self.failing_tracks:
            raise MatchToolError(f"exiftool failed on {track.name}")
        updated = 0
        for f in files:
            if f not in self.effects.get(track.name, set()):
                continue
            if only_if_missing and f in self.gps:
                continue
            self.gps.add(f)
            updated += 1
        return updated


class FakeTrackReader:
    """Returns tracks with spans registered by file name; unknown tracks have no span."""

    def __init__(self, spans: dict[str, tuple[datetime, datetime]] | None = None) -> None:
        self.spans = spans or {}
        self.reads: list[Path] = []

    def read_track(self, path: Path) -> Track:
        self.reads.append(path)
        return Track(path=path, span=self.spans.get(path.name))


def make_photos(folder: Path, count: int, start: datetime, offset: int | None = 0):
    """Return (paths, tags) for `count` photos one minute apart."""
    paths = [folder / f"IMG_{i:04d}.JPG" for i in range(count)]
    tags = {
        p: PhotoTags(path=p, datetime_original=start + timedelta(minutes=i), offset=offset)
        for i, p in enumerate(paths)
    }
    return paths, tags


@pytest.fixture
def fake_tool() -> FakeMetadataTool:
    return FakeMetadataTool()


class ExifToolSimulator:
    """Subprocess stand-in answering the exiftool calls `ExifToolService` makes.

    `reach` maps a track file name to the photo names it covers. Geotag calls
    with ``-o DIR/`` write tagged copies into DIR; without it the originals
    are marked tagged in memory. ``-json`` reads report a fixed capture time.
    """

    def __init__(self, reach: dict[str, set[str]], capture: str = "2024:06:01 09:00:00") -> None:
        self.reach = reach
        self.capture = capture
        self.with_gps: set[str] = set()
        self.geotag_args: list[list[str]] = []

    def __call__(self, cmd):
        args = Path(cmd[cmd.index("-@") + 1]).read_text(encoding="utf-8").splitlines()
        files = [a for a in args if a.upper().endswith(".JPG")]
        if "-json" in args:
            records = []
            for f in files:
                record = {"SourceFile": f, "DateTimeOriginal": self.capture}
                if f in self.with_gps:
                    record.update(GPSLatitude=48.1, GPSLongitude=11.5)
                records.append(record)
            return subprocess.CompletedProcess(cmd, 0, json.dumps(records), "")

        self.geotag_args.append(args)
        track = Path(args[args.index("-geotag") + 1]).name
        if "-if" in args:
            files = [f for f in files if f not in self.with_gps]
        hits = [f for f in files if Path(f).name in self.reach.get(track, set())]
        if "-o" in args:
            out_dir = Path(args[args.index("-o") + 1])
            for f in hits:
                copy = out_dir / Path(f).name
                copy.write_bytes(b"")
                self.with_gps.add(str(copy))
            return subprocess.CompletedProcess(cmd, 0, f"    {len(hits)} image files created\n", "")
        self.with_gps.update(hits)
        return subprocess.CompletedProcess(cmd, 0, f"    {len(hits)} image files updated\n", "")
