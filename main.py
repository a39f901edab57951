from __future__ import annotations

import sys

from loguru import logger

from app.cli import build_config, build_parser
from app.runner import GeotagRunner
from core.errors import ConfigError
from infrastructure.exiftool_service import ExifToolService
from infrastructure.gpx_reader import GpxTrackReader
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.settings import JsonSettings


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = JsonSettings(args.config)
    except ConfigError as ex:
        print(f"Error: {ex}", file=sys.stderr)
        return 2

    log_dir = args.log_dir or settings.get("logging.dir")
    init_logging(log_dir, verbose=args.verbose)

    try:
        config = build_config(args, settings)
        tool = ExifToolService(
            config.exiftool_path,
            batch_size=config.batch_size,
            overwrite_original=config.overwrite_original,
            extension_seconds=config.extension_seconds,
            dry_run=config.dry_run,
        )
        version = tool.version()
        if version is None:
            raise ConfigError(
                f"'{config.exiftool_path}' is not installed or not runnable. Install it with "
                "'brew install exiftool' (macOS) or 'apt install libimage-exiftool-perl' (Linux)"
            )
        logger.debug("exiftool {}", version)
        if config.dry_run:
            logger.info("=== DRY RUN MODE - No files will be modified ===")
            logger.info("Geotagging runs on temporary copies to predict the results")
        GeotagRunner(config, tool, GpxTrackReader()).run()
    except ConfigError as ex:
        logger.error("Error: {}", ex)
        return 2

    log_file = find_latest_log_file(log_dir)
    if log_file is not None:
        logger.info("Full log: {}", log_file)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
