"""Retag policy gating every geotagging call."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from enum import Enum
from pathlib import Path

from core.errors import ConfigError


class RetagPolicy(Enum):
    """Whether files that already carry GPS may be tagged again."""

    MISSING = "missing"
    OVERWRITE = "overwrite"

    @property
    def only_if_missing(self) -> bool:
        """Filter predicate handed to the metadata tool."""
        return self is RetagPolicy.MISSING

    def select_targets(self, files: Sequence[Path], missing: Iterable[Path]) -> list[Path]:
        """Return the files a tagging call may touch, preserving `files` order."""
        if self is RetagPolicy.OVERWRITE:
            return list(files)
        lacking = set(missing)
        return [f for f in files if f in lacking]


def parse_retag(value: str | None) -> RetagPolicy:
    """Parse a ``--retag`` value; defaults to `RetagPolicy.MISSING`."""
    if value is None or value == "":
        return RetagPolicy.MISSING
    try:
        return RetagPolicy(str(value).strip().lower())
    except ValueError as ex:
        raise ConfigError(f"--retag must be missing|overwrite, got {value!r}") from ex
