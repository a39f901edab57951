"""Error taxonomy shared by the core engine and its collaborators.

Configuration errors are fatal and raised before any file is touched.
`MatchToolError` is raised by metadata-tool collaborators and recovered by the
orchestrator on a per-track / per-folder basis.
"""

from __future__ import annotations


class GeotagError(Exception):
    """Base class for all errors raised by this project."""


class ConfigError(GeotagError, ValueError):
    """Invalid or inconsistent run configuration."""


class InvalidTimezone(ConfigError):
    """A timezone designator matched no supported form."""


class OffsetOutOfRange(ConfigError):
    """A numeric UTC offset is outside +/-14:00 or has minutes > 59."""


class InvalidDrift(ConfigError):
    """A drift magnitude string could not be parsed."""


class MatchToolError(GeotagError, RuntimeError):
    """The metadata tool failed on a specific file set or track."""
