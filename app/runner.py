"""Run pipeline: summary, timestamp rewrite, geotagging and completion report."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import Any

from loguru import logger

from core.errors import MatchToolError
from core.interval_matcher import IntervalMatcher
from core.models import FolderResult, FolderStatus, PhotoFolder, RunConfig, ShiftPlan
from core.services.copy_on_match import CopyOnMatch
from core.services.interfaces import MetadataTool, TrackReader
from core.services.match_orchestrator import MatchOrchestrator
from core.services.sort_service import TrackSortService
from core.shift_planner import CaptureClock, ShiftPlanner
from core.timezones import format_offset
from infrastructure.filesystem import iter_photo_folders, list_tracks
from infrastructure.report_repository import CsvReportRepository
from infrastructure.utils import format_signed_hms


def _fmt_offset(seconds: int | None) -> str:
    return "-" if seconds is None else format_offset(seconds)


def _fmt_delta(delta: timedelta) -> str:
    return format_signed_hms(delta)


def _yes(flag: bool) -> str:
    return "yes" if flag else "no"


def verification_command(config: RunConfig) -> str:
    return (
        "exiftool -r -n -T -FileName -DateTimeOriginal -OffsetTimeOriginal "
        f'-GPSLatitude -GPSLongitude "{config.photos_root}"'
    )


class GeotagRunner:
    """Wires the configuration, collaborators and orchestrator for one run."""

    def __init__(
        self,
        config: RunConfig,
        tool: MetadataTool,
        track_reader: TrackReader,
        planner: ShiftPlanner | None = None,
        report_repo: CsvReportRepository | None = None,
    ) -> None:
        self._config = config
        self._tool = tool
        self._reader = track_reader
        self._planner = planner or ShiftPlanner()
        self._report_repo = report_repo or CsvReportRepository()

    def run(self) -> list[FolderResult]:
        """Execute both phases and return one result per folder.

        Raises:
            ConfigError: for inconsistent flags, before anything is written.
        """
        cfg = self._config
        plan = self._planner.from_config(cfg)
        pool = tuple(self._reader.read_track(p) for p in list_tracks(cfg.pool_dir))
        self._log_summary(plan, len(pool))

        folders = list(iter_photo_folders(cfg.photos_root))
        with_images = [f for f in folders if f.images]

        if plan.needs_rewrite or cfg.write_tz_tags:
            logger.info("Normalizing timestamps...")
            self._map(lambda f: self._normalize(plan, f), with_images)

        logger.info("Geotagging...")
        orchestrator = MatchOrchestrator(
            self._tool,
            self._reader,
            plan,
            clock=CaptureClock.for_run(plan, cfg.dry_run),
            matcher=IntervalMatcher(cfg.extension_seconds),
            sorter=TrackSortService(cfg.pool_order),
            retag=cfg.retag,
            copier=CopyOnMatch(enabled=cfg.copy_matched, dry_run=cfg.dry_run),
            pool=pool,
        )
        results = self._map(orchestrator.process_folder, with_images)

        if cfg.report_path is not None:
            try:
                self._report_repo.save(cfg.report_path, results)
            except OSError as ex:
                logger.error("Write report failed: {}", ex)

        self._log_completion(results)
        return results

    def _map(self, fn: Callable[[PhotoFolder], Any], folders: Iterable[PhotoFolder]) -> list[Any]:
        if self._config.workers <= 1:
            return [fn(f) for f in folders]
        with ThreadPoolExecutor(max_workers=self._config.workers) as executor:
            return list(executor.map(fn, folders))

    def _normalize(self, plan: ShiftPlan, folder: PhotoFolder) -> None:
        cfg = self._config
        try:
            if plan.needs_rewrite:
                self._tool.shift_timestamps(folder.images, plan.net_delta)
            if cfg.write_tz_tags:
                offset = cfg.tz_tag if cfg.tz_tag is not None else cfg.to_offset
                if offset is not None:
                    self._tool.write_offset_tags(folder.images, offset)
        except MatchToolError as ex:
            logger.error("Timestamp update failed in {}: {}", folder.path, ex)
            return
        logger.info("{}: {} image(s) normalized", folder.path, len(folder.images))

    def _log_summary(self, plan: ShiftPlan, pool_size: int) -> None:
        cfg = self._config
        drift = "-"
        if cfg.drift is not None:
            drift = f"{cfg.drift.kind.value} {cfg.drift.magnitude}s"
        match_zone = (
            "per-file OffsetTimeOriginal"
            if plan.match_offset is None
            else format_offset(plan.match_offset)
        )
        tag_offset = cfg.tz_tag if cfg.tz_tag is not None else cfg.to_offset
        lines = [
            ("Photos", str(cfg.photos_root)),
            ("Pool", f"{cfg.pool_dir} ({pool_size} track(s))" if cfg.pool_dir else "-"),
            ("From TZ", _fmt_offset(cfg.from_offset)),
            ("To TZ", _fmt_offset(cfg.to_offset)),
            ("Drift", drift),
            ("Net shift", f"{_fmt_delta(plan.net_delta)} (write: {_yes(plan.needs_rewrite)})"),
            (
                "Geo-sync",
                f"{_fmt_delta(plan.geo_sync_delta)} "
                f"(at match time: {_yes(not plan.timestamps_rewritten)})",
            ),
            ("Match zone", match_zone),
            ("Offset tags", _fmt_offset(tag_offset) if cfg.write_tz_tags else "off"),
            ("Retag", cfg.retag.value),
            ("Copy matched", _yes(cfg.copy_matched)),
            ("Backups", "skipped" if cfg.overwrite_original else "kept"),
            ("Extension", f"{cfg.extension_seconds}s"),
            ("Pool order", cfg.pool_order.value),
            ("Workers", str(cfg.workers)),
            ("Dry run", _yes(cfg.dry_run)),
        ]
        for label, value in lines:
            logger.info("{:<13}{}", label + ":", value)

    def _log_completion(self, results: list[FolderResult]) -> None:
        counts: dict[FolderStatus, int] = {}
        for r in results:
            counts[r.status] = counts.get(r.status, 0) + 1
        updated = sum(r.updated_count for r in results)
        copied = sum(len(r.copied) for r in results)
        skipped = sum(len(r.skipped_files) for r in results)
        logger.info(
            "Folders: {} complete, {} partial, {} without tracks, {} failed",
            counts.get(FolderStatus.COMPLETE, 0),
            counts.get(FolderStatus.PARTIAL, 0),
            counts.get(FolderStatus.NO_TRACKS, 0),
            counts.get(FolderStatus.FAILED, 0),
        )
        logger.info(
            "Files newly tagged: {} | tracks copied: {} | files skipped: {}",
            updated,
            copied,
            skipped,
        )
        logger.info("Done. Verify with:\n  {}", verification_command(self._config))
