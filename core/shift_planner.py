"""Combine camera zone, real zone and drift into one shift plan.

Two mutually exclusive modes exist:

* rewritten: stored timestamps are shifted by ``net_delta`` so they read as
  wall clock in the real zone; matching then uses the real zone only.
* untouched: timestamps stay as shot and ``geo_sync_delta`` aligns track UTC
  times with the camera wall clock at match time.

Applying both would count the drift twice.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from loguru import logger

from core.errors import ConfigError
from core.models import DriftSpec, PhotoTags, RunConfig, ShiftPlan
from core.timezones import format_offset


class ShiftPlanner:
    """Computes `ShiftPlan` values from offsets and drift."""

    def plan(
        self,
        from_offset: int,
        to_offset: int,
        drift: DriftSpec | None = None,
        *,
        rewrite: bool = True,
        match_offset: int | None = None,
    ) -> ShiftPlan:
        """Return the plan for a camera set to `from_offset` shooting in `to_offset`.

        ``net_delta = to - from + drift`` and ``geo_sync_delta = from + drift``
        where ahead drift counts negative and behind drift positive.
        """
        drift_signed = drift.signed_seconds if drift else 0
        return ShiftPlan(
            net_delta=timedelta(seconds=to_offset - from_offset + drift_signed),
            geo_sync_delta=timedelta(seconds=from_offset + drift_signed),
            timestamps_rewritten=rewrite,
            match_offset=match_offset,
        )

    def from_config(self, config: RunConfig) -> ShiftPlan:
        """Build the run-level plan, validating flag combinations."""
        forced_zone = config.tz_tag if config.tz_tag is not None else config.to_offset

        if config.explicit_shift is not None:
            if config.from_offset is not None or config.drift is not None:
                raise ConfigError("--shift cannot be combined with --from-tz or --drift-*")
            return ShiftPlan(
                net_delta=config.explicit_shift,
                geo_sync_delta=timedelta(0),
                timestamps_rewritten=True,
                match_offset=forced_zone,
            )

        if config.write_time:
            if config.from_offset is None or config.to_offset is None:
                raise ConfigError("--write-time needs both --from-tz and --to-tz (or --shift)")
            return self.plan(
                config.from_offset,
                config.to_offset,
                config.drift,
                rewrite=True,
                match_offset=forced_zone,
            )

        if (
            config.write_tz_tags
            and config.from_offset is not None
            and forced_zone is not None
            and forced_zone != config.from_offset
        ):
            # Untouched timestamps are still camera-zone wall clock
            raise ConfigError(
                f"--write-tz-tags would label {format_offset(config.from_offset)} timestamps "
                f"as {format_offset(forced_zone)}; add --write-time to shift them first"
            )

        if config.from_offset is not None:
            # The geo-sync delta carries the camera zone; wall clock is read as UTC.
            return self.plan(
                config.from_offset,
                config.to_offset if config.to_offset is not None else config.from_offset,
                config.drift,
                rewrite=False,
                match_offset=0,
            )

        to_offset = config.to_offset if config.to_offset is not None else 0
        return self.plan(0, to_offset, config.drift, rewrite=False, match_offset=forced_zone)


class CaptureClock:
    """Resolves photo wall-clock capture times to UTC in the matching frame."""

    def __init__(self, plan: ShiftPlan, pending_shift: timedelta = timedelta(0)) -> None:
        """Create a clock.

        Args:
            plan: Run shift plan.
            pending_shift: Shift not yet written to the files (dry-run of a
                rewriting run), added to the stored wall clock.
        """
        self._plan = plan
        self._pending = pending_shift

    @classmethod
    def for_run(cls, plan: ShiftPlan, dry_run: bool) -> "CaptureClock":
        pending = plan.net_delta if dry_run and plan.needs_rewrite else timedelta(0)
        return cls(plan, pending)

    @property
    def sync_delta(self) -> timedelta:
        """Sync delta for the tagging tool, against the timestamps as stored now.

        A pending shift has not reached the files yet, so it is folded into
        the delta instead.
        """
        return self._plan.sync_for_matching - self._pending

    def offset_for(self, tags: PhotoTags) -> int | None:
        """Zone offset used to read `tags`; None when nothing is known."""
        if self._plan.match_offset is not None:
            return self._plan.match_offset
        return tags.offset

    def to_utc(self, tags: PhotoTags) -> datetime | None:
        """Return the capture instant in UTC, or None when it cannot be resolved."""
        if tags.datetime_original is None:
            return None
        offset = self.offset_for(tags)
        if offset is None:
            return None
        wall = tags.datetime_original + self._pending
        utc = wall - timedelta(seconds=offset) - self._plan.sync_for_matching
        return utc.replace(tzinfo=timezone.utc)

    def capture_range(
        self, tags: list[PhotoTags]
    ) -> tuple[tuple[datetime, datetime] | None, list[PhotoTags], list[PhotoTags]]:
        """Compute (range, resolved, skipped) over `tags`.

        Files without a capture time or without any usable zone are skipped
        with a warning.
        """
        resolved: list[PhotoTags] = []
        skipped: list[PhotoTags] = []
        instants: list[datetime] = []
        for t in tags:
            utc = self.to_utc(t)
            if utc is None:
                if t.datetime_original is None:
                    logger.warning("[SKIP] {}: no DateTimeOriginal", t.path.name)
                else:
                    logger.warning(
                        "[SKIP] {}: no --to-tz/--tz-tag and no OffsetTimeOriginal", t.path.name
                    )
                skipped.append(t)
                continue
            resolved.append(t)
            instants.append(utc)
        if not instants:
            return None, resolved, skipped
        return (min(instants), max(instants)), resolved, skipped
