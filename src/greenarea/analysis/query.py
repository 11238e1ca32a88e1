"""Image catalog query.

Normalizes the query window, delegates the search to a ``DataSource``,
and re-applies the selection contract locally so every source yields the
same scenes in the same order.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import TYPE_CHECKING

from greenarea.exceptions import ConfigurationError

if TYPE_CHECKING:
    from greenarea._types import CatalogEntry
    from greenarea.region import Region
    from greenarea.sources.base import DataSource, DateRange

logger = logging.getLogger(__name__)


def _parse_date(value: str | date, label: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ConfigurationError(
            what=f"Invalid {label} date: {value!r}",
            cause="Dates must use the ISO-8601 format YYYY-MM-DD",
            fix=f"Pass the {label} date as e.g. 2024-06-01",
        ) from None


def resolve_time_range(time_range: tuple[str | date, str | date]) -> DateRange:
    """Validate a ``(start, end)`` pair into a half-open date window.

    Args:
        time_range: ISO-8601 strings or ``date`` objects.

    Returns:
        ``(start, end)`` as dates with ``start < end``.

    Raises:
        ConfigurationError: If a date is malformed or ``start >= end``.

    Example:
        >>> resolve_time_range(("2024-06-01", "2024-09-01"))
        (datetime.date(2024, 6, 1), datetime.date(2024, 9, 1))
    """
    try:
        raw_start, raw_end = time_range
    except (TypeError, ValueError):
        raise ConfigurationError(
            what="Invalid date range",
            cause=f"Expected a (start, end) pair, got {time_range!r}",
            fix="Pass the date range as two ISO-8601 dates",
        ) from None
    start = _parse_date(raw_start, "start")
    end = _parse_date(raw_end, "end")
    if start >= end:
        raise ConfigurationError(
            what="Invalid date range",
            cause=f"start {start.isoformat()} is not before end {end.isoformat()}",
            fix="The range is half-open [start, end); make end later than start",
        )
    return (start, end)


def query_catalog(
    source: DataSource,
    region: Region,
    time_range: tuple[str | date, str | date],
    max_cloud: float,
) -> list[CatalogEntry]:
    """Select scenes over *region* acquired in ``[start, end)`` below *max_cloud*.

    Returns an empty list, not an error, when nothing matches. Entries
    are ordered by ``(acquired, scene_id)``; duplicate scene ids are
    collapsed to their first occurrence.

    Args:
        source: Catalog to search.
        region: Region of interest; footprints must intersect it.
        time_range: Half-open ``(start, end)`` window.
        max_cloud: Cloud fraction scenes must be strictly below (0.0--1.0).

    Returns:
        Matching catalog entries in stable order.

    Raises:
        ConfigurationError: If the window or *max_cloud* is invalid.
        DataSourceError: If the source cannot be searched.
    """
    window = resolve_time_range(time_range)
    if not (isinstance(max_cloud, (int, float)) and math.isfinite(max_cloud)) or not (
        0.0 <= max_cloud <= 1.0
    ):
        raise ConfigurationError(
            what=f"Invalid maximum cloud fraction: {max_cloud!r}",
            cause="max_cloud must be a fraction between 0 and 1",
            fix="Pass e.g. 0.2 for 20% cloud cover",
        )

    start, end = window
    candidates = source.search(region, window, max_cloud=max_cloud)

    selected: dict[str, CatalogEntry] = {}
    for entry in candidates:
        if entry.scene_id in selected:
            continue
        if not (start <= entry.acquired < end):
            continue
        if not entry.cloud_cover < max_cloud:
            continue
        if not region.intersects(entry.footprint):
            continue
        selected[entry.scene_id] = entry

    entries = sorted(selected.values(), key=lambda e: (e.acquired, e.scene_id))
    logger.info(
        "Catalog query on %s: %d of %d candidate scenes selected (%s to %s, cloud < %.2f)",
        source.name,
        len(entries),
        len(candidates),
        start.isoformat(),
        end.isoformat(),
        max_cloud,
    )
    return entries
