"""Copy a pool track next to the photos it successfully tagged."""

from __future__ import annotations

from pathlib import Path
import shutil

from loguru import logger

from core.models import MatchAttempt, TrackSource


def resolve_destination(folder: Path, track: Path) -> Path:
    """Return the first free name for `track` inside `folder`.

    ``track.gpx`` is used when free, else ``track_1.gpx``, ``track_2.gpx``...
    """
    dst = folder / track.name
    if not dst.exists():
        return dst
    n = 1
    while True:
        candidate = folder / f"{track.stem}_{n}{track.suffix}"
        if not candidate.exists():
            return candidate
        n += 1


class CopyOnMatch:
    """Copies matched pool tracks into photo folders."""

    def __init__(self, enabled: bool, dry_run: bool = False) -> None:
        self.enabled = enabled
        self.dry_run = dry_run

    def should_copy(self, attempt: MatchAttempt) -> bool:
        return (
            self.enabled
            and attempt.source is TrackSource.POOL
            and attempt.updated_count > 0
        )

    def apply(self, folder: Path, attempt: MatchAttempt) -> Path | None:
        """Copy the attempt's track into `folder`; return the destination or None."""
        if not self.should_copy(attempt):
            return None
        src = attempt.track.path
        dst = resolve_destination(folder, src)
        if self.dry_run:
            logger.info("[DRY-RUN] would copy {} -> {}", src, dst)
            return None
        try:
            # "x" mode refuses to clobber a file that appeared since the name was picked
            with src.open("rb") as fin, dst.open("xb") as fout:
                shutil.copyfileobj(fin, fout)
            shutil.copystat(src, dst)
        except FileExistsError:
            logger.warning("Copy skipped, destination appeared: {}", dst)
            return None
        except OSError as ex:
            logger.error("Copy {} -> {} failed: {}", src, dst, ex)
            return None
        logger.info("[COPY] {} -> {}", src.name, dst)
        return dst
