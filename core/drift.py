"""Camera clock drift parsing.

Drift is given as a direction plus a magnitude. ``ahead`` means the camera
clock runs fast (its displayed time is later than the truth), ``behind`` means
it runs slow, and ``exact`` carries its own sign and is used as-is.
"""

from __future__ import annotations

import re

from core.errors import InvalidDrift
from core.models import DriftKind, DriftSpec

_MIN_SEC_RE = re.compile(r"^(\d+):(\d{1,2})m$", re.IGNORECASE)
_MINUTES_RE = re.compile(r"^(\d+)m$", re.IGNORECASE)
_SECONDS_RE = re.compile(r"^(\d+)s$", re.IGNORECASE)
_BARE_RE = re.compile(r"^(\d+)$")


def drift_to_seconds(value: str) -> int:
    """Parse an unsigned magnitude (``3m``, ``1:30m``, ``45s``, ``75``) into seconds."""
    v = value.strip()
    match = _MIN_SEC_RE.match(v)
    if match:
        seconds = int(match.group(2))
        if seconds > 59:
            raise InvalidDrift(f"Bad drift '{value}': seconds part must be 0-59")
        return int(match.group(1)) * 60 + seconds
    match = _MINUTES_RE.match(v)
    if match:
        return int(match.group(1)) * 60
    match = _SECONDS_RE.match(v) or _BARE_RE.match(v)
    if match:
        return int(match.group(1))
    raise InvalidDrift(f"Bad drift '{value}' (use 3m, 45s, 1:30m, +75s)")


def parse_drift(kind: str | DriftKind, value: str) -> DriftSpec:
    """Build a `DriftSpec` from a kind and a magnitude string.

    Only ``exact`` accepts a leading ``+``/``-``.
    """
    try:
        drift_kind = DriftKind(kind)
    except ValueError as ex:
        raise InvalidDrift(f"drift kind must be ahead|behind|exact, got {kind!r}") from ex

    v = (value or "").strip()
    if not v:
        raise InvalidDrift(f"empty drift value for --drift-{drift_kind.value}")

    sign = 1
    if v[0] in "+-":
        if drift_kind is not DriftKind.EXACT:
            raise InvalidDrift(
                f"Bad drift '{value}': a sign is only allowed with --drift-exact"
            )
        sign = -1 if v[0] == "-" else 1
        v = v[1:]
    return DriftSpec(kind=drift_kind, magnitude=sign * drift_to_seconds(v))
