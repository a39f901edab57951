"""Core domain models for photo folders, tracks, shift plans and match attempts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path

from core.rules.retag import RetagPolicy

DEFAULT_EXTENSION_SECONDS = 1800


class DriftKind(Enum):
    AHEAD = "ahead"
    BEHIND = "behind"
    EXACT = "exact"


@dataclass(frozen=True)
class DriftSpec:
    """Camera clock drift.

    Attributes:
        kind: Direction of the drift.
        magnitude: Seconds; non-negative for ahead/behind, signed for exact.
    """

    kind: DriftKind
    magnitude: int

    @property
    def signed_seconds(self) -> int:
        """Drift contribution to the net shift: ahead subtracts, behind adds."""
        if self.kind is DriftKind.AHEAD:
            return -self.magnitude
        return self.magnitude


@dataclass(frozen=True)
class ShiftPlan:
    """Net timestamp shift and geo-sync delta computed once per run.

    Exactly one of the two corrections reaches the photos: either the stored
    timestamps are rewritten by `net_delta`, or `geo_sync_delta` is applied
    when matching against track times.

    Attributes:
        net_delta: Shift added to DateTimeOriginal/CreateDate/ModifyDate.
        geo_sync_delta: Track UTC time + this delta = camera wall clock.
        timestamps_rewritten: True when the run rewrites stored timestamps.
        match_offset: Fixed zone (seconds) used to read photo wall clocks at
            match time; None means each file's stored OffsetTimeOriginal.
    """

    net_delta: timedelta
    geo_sync_delta: timedelta
    timestamps_rewritten: bool = False
    match_offset: int | None = None

    @property
    def needs_rewrite(self) -> bool:
        return self.timestamps_rewritten and self.net_delta != timedelta(0)

    @property
    def sync_for_matching(self) -> timedelta:
        if self.timestamps_rewritten:
            return timedelta(0)
        return self.geo_sync_delta


@dataclass(frozen=True)
class PhotoTags:
    """Tags read from one image by the metadata tool."""

    path: Path
    datetime_original: datetime | None
    offset: int | None = None
    has_gps: bool = False


@dataclass(frozen=True)
class PhotoFolder:
    """A directory with its image files and local track files (non-recursive)."""

    path: Path
    images: tuple[Path, ...] = ()
    local_tracks: tuple[Path, ...] = ()


@dataclass(frozen=True)
class Track:
    """A GPX file and its UTC time span; None when no timestamp could be read."""

    path: Path
    span: tuple[datetime, datetime] | None = None

    @property
    def name(self) -> str:
        return self.path.name


class TrackSource(Enum):
    LOCAL = "local"
    POOL = "pool"


class PoolOrder(Enum):
    """Order in which pool tracks are tried for a folder."""

    ALPHABETICAL = "alphabetical"
    PROXIMITY = "proximity"


@dataclass
class MatchAttempt:
    """One geotagging attempt of a track against a folder."""

    track: Track
    source: TrackSource
    files_considered: int
    missing_before: int
    missing_after: int
    error: str | None = None
    copied_to: Path | None = None

    @property
    def updated_count(self) -> int:
        if self.error:
            return 0
        return max(0, self.missing_before - self.missing_after)


class FolderStatus(Enum):
    EMPTY = "empty"
    COMPLETE = "complete"
    PARTIAL = "partial"
    NO_TRACKS = "no_tracks"
    FAILED = "failed"


@dataclass
class FolderResult:
    """Outcome of processing a single folder."""

    folder: Path
    attempts: list[MatchAttempt] = field(default_factory=list)
    copied: list[Path] = field(default_factory=list)
    skipped_files: list[Path] = field(default_factory=list)
    missing_final: int = 0
    capture_range: tuple[datetime, datetime] | None = None
    error: str | None = None

    @property
    def updated_count(self) -> int:
        return sum(a.updated_count for a in self.attempts)

    @property
    def status(self) -> FolderStatus:
        if self.error:
            return FolderStatus.FAILED
        if not self.attempts:
            return FolderStatus.EMPTY if self.missing_final == 0 else FolderStatus.NO_TRACKS
        return FolderStatus.COMPLETE if self.missing_final == 0 else FolderStatus.PARTIAL


@dataclass(frozen=True)
class RunConfig:
    """Immutable run configuration built once from CLI flags and settings."""

    photos_root: Path
    pool_dir: Path | None = None
    from_offset: int | None = None
    to_offset: int | None = None
    drift: DriftSpec | None = None
    explicit_shift: timedelta | None = None
    tz_tag: int | None = None
    write_time: bool = False
    write_tz_tags: bool = False
    retag: RetagPolicy = RetagPolicy.MISSING
    copy_matched: bool = False
    overwrite_original: bool = False
    dry_run: bool = False
    verbose: bool = False
    extension_seconds: int = DEFAULT_EXTENSION_SECONDS
    pool_order: PoolOrder = PoolOrder.ALPHABETICAL
    workers: int = 1
    exiftool_path: str = "exiftool"
    batch_size: int = 100
    report_path: Path | None = None
