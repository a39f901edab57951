"""Settings access helpers for JSON-based configuration."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from core.errors import ConfigError


class JsonSettings:
    """Lightweight JSON settings reader with dotted-key access."""

    def __init__(self, settings_path: str | Path | None = None) -> None:
        """Load `settings_path`; `None` gives empty settings where every key defaults."""
        self._data: dict[str, Any] = {}
        self._path = Path(settings_path) if settings_path else None
        if self._path is None:
            return
        if not self._path.exists():
            raise ConfigError(f"settings file not found: {self._path}")
        try:
            with self._path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as ex:
            raise ConfigError(f"cannot read settings {self._path}: {ex}") from ex
        if not isinstance(data, dict):
            raise ConfigError(f"settings root must be an object: {self._path}")
        self._data = data

    @property
    def path(self) -> Path | None:
        return self._path

    def get(self, key: str, default: Any | None = None) -> Any:
        """Return value for dotted `key`, or `default` if not present."""
        parts = key.split(".")
        node: Any = self._data
        for part in parts:
            if isinstance(node, dict) and part in node:
                node = node[part]
            else:
                return default
        return node

    def get_int(self, key: str, default: int) -> int:
        """Return an integer setting, raising `ConfigError` for non-numeric values."""
        value = self.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as ex:
            raise ConfigError(f"setting {key} must be an integer, got {value!r}") from ex
