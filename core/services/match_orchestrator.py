"""Per-folder track selection and application.

For every folder the orchestrator applies all local tracks, then tries pool
tracks one at a time until no file is left without GPS. The missing-GPS count
is queried once before the first attempt and once after every attempt; the
"after" of one attempt is the "before" of the next.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from loguru import logger

from core.errors import MatchToolError
from core.interval_matcher import IntervalMatcher
from core.models import FolderResult, MatchAttempt, PhotoFolder, ShiftPlan, Track, TrackSource
from core.rules.retag import RetagPolicy
from core.services.copy_on_match import CopyOnMatch
from core.services.interfaces import MetadataTool, TrackReader
from core.services.sort_service import TrackSortService
from core.shift_planner import CaptureClock


class MatchOrchestrator:
    """Decides which tracks to apply to a folder and in which order."""

    def __init__(
        self,
        tool: MetadataTool,
        track_reader: TrackReader,
        plan: ShiftPlan,
        *,
        clock: CaptureClock | None = None,
        matcher: IntervalMatcher | None = None,
        sorter: TrackSortService | None = None,
        retag: RetagPolicy = RetagPolicy.MISSING,
        copier: CopyOnMatch | None = None,
        pool: Sequence[Track] = (),
    ) -> None:
        """Create an orchestrator.

        Args:
            tool: Metadata tool used for every read and write.
            track_reader: Reader for local track spans.
            plan: Run shift plan; supplies the match-time sync delta and zone.
            clock: Capture clock (defaults to one built from `plan`).
            matcher: Interval matcher for pool pre-selection.
            sorter: Pool trial order strategy.
            retag: Retag policy applied to every geotag call.
            copier: Copy-on-match handler (disabled by default).
            pool: Pool tracks, read once per run.
        """
        self._tool = tool
        self._reader = track_reader
        self._plan = plan
        self._clock = clock or CaptureClock(plan)
        self._matcher = matcher or IntervalMatcher(0)
        self._sorter = sorter or TrackSortService()
        self._retag = retag
        self._copier = copier or CopyOnMatch(enabled=False)
        self._pool: tuple[Track, ...] = tuple(pool)

    @property
    def pool(self) -> tuple[Track, ...]:
        return self._pool

    def process_folder(self, folder: PhotoFolder) -> FolderResult:
        """Apply local then pool tracks to `folder` and report what happened."""
        result = FolderResult(folder=folder.path)
        if not folder.images:
            return result

        try:
            tags = self._tool.read_tags(folder.images)
        except MatchToolError as ex:
            logger.error("Reading tags failed in {}: {}", folder.path, ex)
            result.error = str(ex)
            return result

        capture_range, resolved, skipped = self._clock.capture_range(tags)
        result.capture_range = capture_range
        result.skipped_files = [t.path for t in skipped]
        files = [t.path for t in resolved]
        if not files:
            logger.info("{}: no image with a usable capture time", folder.path)
            return result

        try:
            missing = self._tool.missing_gps(files)
        except MatchToolError as ex:
            logger.error("GPS scan failed in {}: {}", folder.path, ex)
            result.error = str(ex)
            return result

        logger.info(
            "{}: {} image(s), {} without GPS, {} local track(s)",
            folder.path,
            len(files),
            len(missing),
            len(folder.local_tracks),
        )

        for path in sorted(folder.local_tracks, key=lambda p: p.name):
            track = self._reader.read_track(path)
            attempt, missing = self._attempt(files, track, TrackSource.LOCAL, missing)
            if attempt is not None:
                result.attempts.append(attempt)

        if missing:
            for track in self._pool_candidates(capture_range):
                if not missing:
                    break
                attempt, missing = self._attempt(files, track, TrackSource.POOL, missing)
                if attempt is None:
                    continue
                result.attempts.append(attempt)
                copied = self._copier.apply(folder.path, attempt)
                if copied is not None:
                    attempt.copied_to = copied
                    result.copied.append(copied)

        result.missing_final = len(missing)
        if not result.attempts:
            logger.info("[NO TRACKS] {}: {} file(s) left without GPS", folder.path, len(missing))
        elif missing:
            logger.info("[PARTIAL] {}: {} file(s) still without GPS", folder.path, len(missing))
        return result

    def _pool_candidates(self, capture_range) -> list[Track]:
        candidates: list[Track] = []
        for t in self._pool:
            if self._matcher.overlaps(capture_range, t.span):
                candidates.append(t)
            else:
                logger.debug("Pool track {} does not overlap, skipped", t.name)
        return self._sorter.sort(candidates, capture_range)

    def _attempt(
        self, files: list[Path], track: Track, source: TrackSource, missing: list[Path]
    ) -> tuple[MatchAttempt | None, list[Path]]:
        targets = self._retag.select_targets(files, missing)
        if not targets:
            logger.debug("Nothing to tag with {}", track.name)
            return None, missing

        error: str | None = None
        try:
            reported = self._tool.geotag(
                targets,
                track.path,
                self._clock.sync_delta,
                self._plan.match_offset,
                self._retag.only_if_missing,
            )
            logger.debug("{} reported {} file(s) updated", track.name, reported)
        except MatchToolError as ex:
            logger.error("Geotag with {} failed: {}", track.path, ex)
            error = str(ex)

        try:
            after = self._tool.missing_gps(files)
        except MatchToolError as ex:
            logger.error("GPS rescan after {} failed: {}", track.name, ex)
            error = error or str(ex)
            after = missing

        attempt = MatchAttempt(
            track=track,
            source=source,
            files_considered=len(targets),
            missing_before=len(missing),
            missing_after=len(after),
            error=error,
        )
        if attempt.updated_count > 0:
            logger.info(
                "[MATCH] {} ({}): {} file(s) newly tagged",
                track.name,
                source.value,
                attempt.updated_count,
            )
        else:
            logger.info("[NO MATCH] {} ({})", track.name, source.value)
        return attempt, after
