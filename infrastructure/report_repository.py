"""CSV run report: one row per match attempt, one per folder without attempts."""

from __future__ import annotations

from collections.abc import Iterable
import csv
from pathlib import Path

from loguru import logger

from core.models import FolderResult

REPORT_HEADERS = [
    "Folder",
    "Status",
    "Track",
    "Source",
    "FilesConsidered",
    "MissingBefore",
    "MissingAfter",
    "Updated",
    "CopiedTo",
    "Error",
]


class CsvReportRepository:
    """Writes folder results in CSV format."""

    def save(self, csv_path: str | Path, results: Iterable[FolderResult]) -> int:
        """Write `results` to `csv_path`; return the number of data rows."""
        path = Path(csv_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        rows = 0
        with path.open("w", encoding="utf-8", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=REPORT_HEADERS)
            writer.writeheader()
            for result in results:
                status = result.status.value
                if not result.attempts:
                    writer.writerow(
                        {
                            "Folder": str(result.folder),
                            "Status": status,
                            "MissingAfter": result.missing_final,
                            "Error": result.error or "",
                        }
                    )
                    rows += 1
                    continue
                for attempt in result.attempts:
                    writer.writerow(
                        {
                            "Folder": str(result.folder),
                            "Status": status,
                            "Track": str(attempt.track.path),
                            "Source": attempt.source.value,
                            "FilesConsidered": attempt.files_considered,
                            "MissingBefore": attempt.missing_before,
                            "MissingAfter": attempt.missing_after,
                            "Updated": attempt.updated_count,
                            "CopiedTo": str(attempt.copied_to) if attempt.copied_to else "",
                            "Error": attempt.error or "",
                        }
                    )
                    rows += 1
        logger.info("Report written: {} ({} rows)", path, rows)
        return rows
