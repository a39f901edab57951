"""ExifTool-backed implementation of the `MetadataTool` interface.

Every call goes through an ``-@`` argument file so paths and ``<$Tag>``
expressions need no shell quoting. Reads use ``-json -n`` in batches; writes
respect dry-run by logging the argument file instead of running it.

Dry-run geotagging writes to temporary copies (``-o``) instead of the
originals. Files whose copy gained GPS are remembered and reported as tagged
by later reads, so the matching loop makes the same decisions as a real run.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import timedelta
import json
import os
from pathlib import Path
import re
import subprocess
import tempfile
import threading
from typing import Any

from loguru import logger

from core.errors import MatchToolError
from core.models import PhotoTags
from core.timezones import format_offset, parse_offset_tag
from infrastructure.utils import format_hms, format_signed_hms, parse_exif_datetime

READ_TAGS = ["-DateTimeOriginal", "-OffsetTimeOriginal", "-GPSLatitude", "-GPSLongitude"]
SHIFT_TAGS = ("DateTimeOriginal", "CreateDate", "ModifyDate")
OFFSET_TAGS = ("OffsetTimeOriginal", "OffsetTime", "OffsetTimeDigitized")

# exiftool exits with 2 when every file failed the -if condition
EXIT_IF_FAILED = 2

_UPDATED_RE = re.compile(r"(\d+)\s+image files?\s+(?:updated|created)")

Runner = Callable[[list[str]], "subprocess.CompletedProcess[str]"]


def _default_runner(cmd: list[str]) -> "subprocess.CompletedProcess[str]":
    return subprocess.run(
        cmd, capture_output=True, text=True, encoding="utf-8", errors="replace", check=False
    )


def parse_updated_count(output: str) -> int:
    """Sum the ``N image files updated`` (or ``created`` with ``-o``) counters."""
    return sum(int(m.group(1)) for m in _UPDATED_RE.finditer(output or ""))


def build_geotime_arg(offset: int | None) -> str:
    """Return the ``-geotime`` expression for a fixed zone or per-file tags."""
    if offset is None:
        return "-geotime<${DateTimeOriginal}${OffsetTimeOriginal}>"
    return f"-geotime<${{DateTimeOriginal}}{format_offset(offset)}>"


def build_geosync_arg(sync_delta: timedelta) -> str | None:
    """Convert a sync delta (track UTC + delta = photo clock) to ``-geosync``.

    exiftool adds the geosync value to the image time to get GPS time, so the
    sign is inverted here. Returns None for a zero delta.
    """
    if sync_delta == timedelta(0):
        return None
    return f"-geosync={format_signed_hms(-sync_delta)}"


class ExifToolService:
    """Runs exiftool as an external process for reads, shifts and geotagging."""

    def __init__(
        self,
        exiftool_path: str = "exiftool",
        *,
        batch_size: int = 100,
        overwrite_original: bool = False,
        extension_seconds: int | None = None,
        dry_run: bool = False,
        runner: Runner | None = None,
    ) -> None:
        """Create the service.

        Args:
            exiftool_path: Executable name or path.
            batch_size: Files per read invocation.
            overwrite_original: Skip ``_original`` backup copies.
            extension_seconds: ``GeoMaxExtSecs`` passed to geotag calls.
            dry_run: Log write commands instead of running them.
            runner: Callable executing a command list (tests inject fakes).
        """
        self._exe = exiftool_path
        self._batch_size = max(1, int(batch_size or 1))
        self._overwrite = overwrite_original
        self._extension = extension_seconds
        self._dry_run = dry_run
        self._runner = runner or _default_runner
        # normalized paths a dry-run geotag would have given GPS
        self._preview_tagged: set[str] = set()
        self._preview_lock = threading.Lock()

    def version(self) -> str | None:
        """Return the exiftool version string, or None when it cannot run."""
        try:
            proc = self._runner([self._exe, "-ver"])
        except OSError:
            return None
        if proc.returncode != 0:
            return None
        return (proc.stdout or "").strip() or None

    # MetadataTool API
    def read_tags(self, files: Sequence[Path]) -> list[PhotoTags]:
        paths = list(files)
        records: dict[str, dict[str, Any]] = {}
        for i in range(0, len(paths), self._batch_size):
            batch = paths[i : i + self._batch_size]
            proc = self._run(["-json", "-n", *READ_TAGS, *[str(p) for p in batch]])
            if not (proc.stdout or "").strip():
                if proc.returncode != 0:
                    raise MatchToolError(f"exiftool read failed: {(proc.stderr or '').strip()}")
                continue
            try:
                data = json.loads(proc.stdout)
            except json.JSONDecodeError as ex:
                raise MatchToolError(f"exiftool returned invalid JSON: {ex}") from ex
            for exif in data:
                records[os.path.normpath(str(exif.get("SourceFile", "")))] = exif

        result: list[PhotoTags] = []
        for p in paths:
            exif = records.get(os.path.normpath(str(p)))
            if exif is None:
                logger.warning("No metadata returned for {}", p)
                result.append(PhotoTags(path=p, datetime_original=None))
                continue
            result.append(self._to_tags(p, exif))
        return result

    def missing_gps(self, files: Sequence[Path]) -> list[Path]:
        return [t.path for t in self.read_tags(files) if not t.has_gps]

    def shift_timestamps(self, files: Sequence[Path], delta: timedelta) -> None:
        if not files or delta == timedelta(0):
            return
        op = "-=" if delta < timedelta(0) else "+="
        hms = format_hms(delta)
        args = [*self._write_options(), *[f"-{tag}{op}{hms}" for tag in SHIFT_TAGS]]
        self._write(args, files)

    def write_offset_tags(self, files: Sequence[Path], offset: int) -> None:
        if not files:
            return
        value = format_offset(offset)
        args = [*self._write_options(), *[f"-{tag}={value}" for tag in OFFSET_TAGS]]
        self._write(args, files)

    def geotag(
        self,
        files: Sequence[Path],
        track: Path,
        sync_delta: timedelta,
        offset: int | None,
        only_if_missing: bool,
    ) -> int:
        if not files:
            return 0
        args = self._write_options()
        if self._extension:
            args += ["-api", f"GeoMaxExtSecs={self._extension}"]
        args += ["-geotag", str(track), build_geotime_arg(offset)]
        geosync = build_geosync_arg(sync_delta)
        if geosync:
            args.append(geosync)
        if only_if_missing:
            args += ["-if", "not $GPSLatitude"]
        if self._dry_run:
            return self._geotag_preview(args, files)
        proc = self._write(args, files)
        if proc is None:
            return 0
        return parse_updated_count(proc.stdout)

    def _geotag_preview(self, options: list[str], files: Sequence[Path]) -> int:
        """Geotag copies in a temporary directory; originals stay untouched.

        Originals whose copy carries GPS afterwards are remembered so the
        following `missing_gps` scans see them as tagged.
        """
        logger.info("[DRY-RUN] exiftool {} (on temporary copies)", " ".join(options))
        by_name = {Path(f).name: Path(f) for f in files}
        with tempfile.TemporaryDirectory(prefix="geotag_preview_") as tmp:
            opts = [o for o in options if o != "-overwrite_original"]
            proc = self._run([*opts, "-o", f"{tmp}/", *[str(f) for f in files]])
            if proc.returncode not in (0, EXIT_IF_FAILED):
                raise MatchToolError(
                    f"exiftool exited with {proc.returncode}: {(proc.stderr or '').strip()}"
                )
            copies = sorted(Path(tmp).iterdir())
            tagged = [
                by_name[t.path.name]
                for t in self.read_tags(copies)
                if t.has_gps and t.path.name in by_name
            ]
        with self._preview_lock:
            self._preview_tagged.update(os.path.normpath(str(p)) for p in tagged)
        return parse_updated_count(proc.stdout)

    # Internals
    def _to_tags(self, path: Path, exif: dict[str, Any]) -> PhotoTags:
        lat = exif.get("GPSLatitude")
        lon = exif.get("GPSLongitude")
        has_gps = lat not in (None, "") and lon not in (None, "")
        if not has_gps and self._preview_tagged:
            with self._preview_lock:
                has_gps = os.path.normpath(str(path)) in self._preview_tagged
        return PhotoTags(
            path=path,
            datetime_original=parse_exif_datetime(exif.get("DateTimeOriginal")),
            offset=parse_offset_tag(exif.get("OffsetTimeOriginal")),
            has_gps=has_gps,
        )

    def _write_options(self) -> list[str]:
        opts = ["-P"]
        if self._overwrite:
            opts.append("-overwrite_original")
        return opts

    def _write(
        self, options: list[str], files: Sequence[Path]
    ) -> "subprocess.CompletedProcess[str] | None":
        args = [*options, *[str(f) for f in files]]
        if self._dry_run:
            logger.info("[DRY-RUN] exiftool {}", " ".join(options))
            logger.debug("[DRY-RUN] files: {}", ", ".join(Path(f).name for f in files))
            return None
        proc = self._run(args)
        if proc.returncode not in (0, EXIT_IF_FAILED):
            raise MatchToolError(
                f"exiftool exited with {proc.returncode}: {(proc.stderr or '').strip()}"
            )
        return proc

    def _run(self, args: list[str]) -> "subprocess.CompletedProcess[str]":
        fd, argfile = tempfile.mkstemp(prefix="geotag_", suffix=".args")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write("-charset\nfilename=utf8\n")
                for a in args:
                    f.write(f"{a}\n")
            logger.debug("[ARGFILE] {}", " | ".join(args))
            try:
                return self._runner([self._exe, "-@", argfile])
            except OSError as ex:
                raise MatchToolError(f"cannot run {self._exe}: {ex}") from ex
        finally:
            try:
                os.unlink(argfile)
            except OSError as ex:
                logger.debug("argfile cleanup failed for {}: {}", argfile, ex)
