"""Command-line surface: argument parsing and `RunConfig` construction."""

from __future__ import annotations

import argparse
from pathlib import Path
import re

from core.drift import parse_drift
from core.errors import ConfigError
from core.models import DEFAULT_EXTENSION_SECONDS, RunConfig
from core.rules.retag import parse_retag
from core.services.sort_service import parse_pool_order
from core.shift_planner import ShiftPlanner
from core.timezones import parse_timezone
from infrastructure.settings import JsonSettings
from infrastructure.utils import parse_signed_hms

_TZ_TAG_RE = re.compile(r"^[+-]\d{2}:\d{2}$")

DESCRIPTION = """\
Fix photo timestamps for camera timezone/clock error and geotag photos from GPX tracks.

Phase 1 (with --write-time or --shift): shift DateTimeOriginal/CreateDate/ModifyDate by
  NET = (to - from) - ahead + behind, then write OffsetTime* tags if asked.
Phase 2: geotag every folder with its own GPX files, then with pool tracks whose time
  span overlaps the folder, until no photo is left without GPS. If phase 1 rewrote
  the timestamps no drift is applied again; otherwise the drift and camera zone are
  applied at match time only.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="geotag-master",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--photos", required=True, metavar="DIR", help="Root of photo folders")
    parser.add_argument("--pool", metavar="DIR", help="Directory of shared GPX tracks")
    parser.add_argument("--from-tz", metavar="TZ", help="Timezone the camera clock was set to")
    parser.add_argument("--to-tz", metavar="TZ", help="Real timezone where photos were taken")
    parser.add_argument(
        "--shift", metavar="±H:M:S", help="Explicit shift, overrides --from-tz/--to-tz math"
    )
    parser.add_argument(
        "--tz-tag", metavar="±HH:MM", help="Offset written to OffsetTime* tags (default: --to-tz)"
    )

    drift = parser.add_mutually_exclusive_group()
    drift.add_argument("--drift-ahead", metavar="V", help="Camera clock fast by V (3m, 1:30m, 45s)")
    drift.add_argument("--drift-behind", metavar="V", help="Camera clock slow by V")
    drift.add_argument("--drift-exact", metavar="±V", help="Signed drift added to the shift")

    parser.add_argument("--write-time", action="store_true", help="Rewrite stored timestamps")
    parser.add_argument(
        "--write-tz-tags", action="store_true", help="Write OffsetTime/OffsetTimeOriginal tags"
    )
    parser.add_argument(
        "--retag",
        choices=["missing", "overwrite"],
        default=None,
        help="missing: only photos without GPS (default); overwrite: always reapply",
    )
    parser.add_argument(
        "--copy-matched", action="store_true", help="Copy matching pool tracks into the folder"
    )
    parser.add_argument(
        "--overwrite", action="store_true", help="Do not keep exiftool _original backups"
    )
    parser.add_argument(
        "--max-ext",
        type=int,
        default=None,
        metavar="SECS",
        help=f"Time tolerance around tracks (default: {DEFAULT_EXTENSION_SECONDS})",
    )
    parser.add_argument(
        "--pool-order",
        choices=["alphabetical", "proximity"],
        default=None,
        help="Order in which pool tracks are tried (default: alphabetical)",
    )
    parser.add_argument("--workers", type=int, default=None, help="Folders processed in parallel")
    parser.add_argument("--config", metavar="JSON", help="Settings file with defaults")
    parser.add_argument("--report", metavar="CSV", help="Write a CSV report of match attempts")
    parser.add_argument("--log-dir", metavar="DIR", help="Directory for rotating log files")
    parser.add_argument("--dry-run", action="store_true", help="Print the plan, change nothing")
    parser.add_argument("--verbose", action="store_true", help="Show exiftool argument files")
    return parser


def _existing_dir(value: str, flag: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_dir():
        raise ConfigError(f"{flag} not found: {value}")
    return path


def _drift_from_args(args: argparse.Namespace):
    for kind in ("ahead", "behind", "exact"):
        value = getattr(args, f"drift_{kind}", None)
        if value is not None:
            return parse_drift(kind, value)
    return None


def build_config(args: argparse.Namespace, settings: JsonSettings | None = None) -> RunConfig:
    """Validate parsed arguments and return the immutable run configuration.

    CLI flags win over settings file values. Raises `ConfigError` on any
    invalid or inconsistent value, before anything is written.
    """
    settings = settings or JsonSettings(None)

    photos_root = _existing_dir(args.photos, "--photos")
    pool_dir = _existing_dir(args.pool, "--pool") if args.pool else None

    from_offset = parse_timezone(args.from_tz) if args.from_tz else None
    to_offset = parse_timezone(args.to_tz) if args.to_tz else None

    tz_tag = None
    if args.tz_tag:
        if not _TZ_TAG_RE.match(args.tz_tag.strip()):
            raise ConfigError("--tz-tag must be ±HH:MM")
        tz_tag = parse_timezone(args.tz_tag)

    explicit_shift = None
    if args.shift:
        explicit_shift = parse_signed_hms(args.shift)
        if explicit_shift is None:
            raise ConfigError("--shift must be ±H:M:S")

    if args.write_tz_tags and tz_tag is None and to_offset is None:
        raise ConfigError("--write-tz-tags needs --tz-tag or --to-tz")

    extension = args.max_ext
    if extension is None:
        extension = settings.get_int("matching.extension_seconds", DEFAULT_EXTENSION_SECONDS)
    if extension < 0:
        raise ConfigError("--max-ext must be >= 0")

    workers = args.workers if args.workers is not None else settings.get_int("run.workers", 1)
    if workers < 1:
        raise ConfigError("--workers must be >= 1")

    batch_size = settings.get_int("exiftool.batch_size", 100)
    if batch_size < 1:
        raise ConfigError("exiftool.batch_size must be >= 1")

    config = RunConfig(
        photos_root=photos_root,
        pool_dir=pool_dir,
        from_offset=from_offset,
        to_offset=to_offset,
        drift=_drift_from_args(args),
        explicit_shift=explicit_shift,
        tz_tag=tz_tag,
        write_time=bool(args.write_time or explicit_shift is not None),
        write_tz_tags=bool(args.write_tz_tags),
        retag=parse_retag(args.retag or settings.get("matching.retag")),
        copy_matched=bool(args.copy_matched),
        overwrite_original=bool(args.overwrite),
        dry_run=bool(args.dry_run),
        verbose=bool(args.verbose),
        extension_seconds=extension,
        pool_order=parse_pool_order(args.pool_order or settings.get("matching.pool_order")),
        workers=workers,
        exiftool_path=str(settings.get("exiftool.path", "exiftool") or "exiftool"),
        batch_size=batch_size,
        report_path=Path(args.report) if args.report else None,
    )
    # reject inconsistent flag combinations
    ShiftPlanner().from_config(config)
    return config
