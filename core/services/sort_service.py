"""Ordering strategies for pool tracks tried against a folder.

Orders are deterministic: alphabetical is a case-sensitive sort on the file
name, proximity sorts by the gap between the track span and the folder range
and falls back to the name for ties.
"""

from __future__ import annotations

from collections.abc import Iterable

from core.errors import ConfigError
from core.interval_matcher import TimeRange, gap_seconds
from core.models import PoolOrder, Track


class TrackSortService:
    """Sorts candidate tracks according to a `PoolOrder` strategy."""

    def __init__(self, order: PoolOrder = PoolOrder.ALPHABETICAL) -> None:
        self.order = order

    def sort(self, tracks: Iterable[Track], folder_range: TimeRange | None = None) -> list[Track]:
        """Return `tracks` in trial order without mutating the input."""
        items = list(tracks)
        if self.order is PoolOrder.PROXIMITY:
            return sorted(items, key=lambda t: (gap_seconds(folder_range, t.span), t.name))
        return sorted(items, key=lambda t: t.name)


def parse_pool_order(value: str | None) -> PoolOrder:
    """Parse ``--pool-order``."""
    if not value:
        return PoolOrder.ALPHABETICAL
    try:
        return PoolOrder(str(value).strip().lower())
    except ValueError as ex:
        raise ConfigError(f"--pool-order must be alphabetical|proximity, got {value!r}") from ex
