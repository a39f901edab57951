"""Logging initialization utilities using loguru."""

from __future__ import annotations

from pathlib import Path
import sys

from loguru import logger


def get_log_directory() -> str:
    """Get the default log directory path."""
    return str(Path.home() / ".geotag-master" / "logs")


def init_logging(log_dir: str | None = None, verbose: bool = False) -> None:
    """Initialize console output and rotating file logging.

    The console sink carries the user-facing progress lines; the file sink
    keeps a full DEBUG trace of every exiftool invocation.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format="{message}",
        level="DEBUG" if verbose else "INFO",
        backtrace=False,
        diagnose=False,
    )

    if log_dir is None:
        log_dir = get_log_directory()
    log_path = Path(log_dir)
    try:
        log_path.mkdir(parents=True, exist_ok=True)
    except OSError as ex:
        logger.warning("File logging disabled, cannot create {}: {}", log_path, ex)
        return

    logger.add(
        str(log_path / "geotag_{time:YYYYMMDD}.log"),
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        level="DEBUG",
    )


def find_latest_log_file(log_dir: str | None = None) -> Path | None:
    """Find the latest log file in the specified directory."""
    if log_dir is None:
        log_dir = get_log_directory()

    try:
        log_path = Path(log_dir)
        if not log_path.exists():
            return None
        log_files = list(log_path.glob("geotag_*.log"))
        if not log_files:
            return None
        return max(log_files, key=lambda p: p.stat().st_mtime)
    except (OSError, ValueError):
        return None
