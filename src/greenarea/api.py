"""Top-level convenience API.

Example:
    >>> import greenarea as ga
    >>> result = ga.vegetation_area(
    ...     "POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))",
    ...     ("2024-06-01", "2024-09-01"),
    ...     source="local",
    ...     root="scenes/",
    ... )
    >>> print(result.summary_line())
"""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Any

from shapely.geometry.base import BaseGeometry

from greenarea._pipeline import run_pipeline
from greenarea.config import get_default_config
from greenarea.region import Region
from greenarea.region import region as create_region
from greenarea.sources import DataSource, get_source

if TYPE_CHECKING:
    from greenarea._types import CancellationToken
    from greenarea.config import Config
    from greenarea.results import AreaResult


def _resolve_region(definition: Region | BaseGeometry | str | Path) -> Region:
    if isinstance(definition, Region):
        return definition
    return create_region(definition)


def vegetation_area(
    region: Region | BaseGeometry | str | Path,
    time_range: tuple[str | date, str | date],
    source: DataSource | str = "stac",
    *,
    config: Config | None = None,
    token: CancellationToken | None = None,
    **source_options: Any,
) -> AreaResult:
    """Compute the area of vegetated pixels inside a region.

    Args:
        region: A ``Region``, a shapely geometry, WKT/GeoJSON text, or a
            path to a file holding one.
        time_range: Half-open ``(start, end)`` window as ISO strings or dates.
        source: A ``DataSource`` instance or a registered source name.
        config: Optional configuration. Defaults to the module-level one.
        token: Optional cancellation token.
        **source_options: Constructor options when *source* is a name
            (e.g. ``root=`` for ``"local"``).

    Returns:
        ``AreaResult`` with the area, composite, mask and quality.

    Raises:
        ConfigurationError: If the region, dates or settings are invalid.
        EmptyInputError: If no usable scene was found.
        DataSourceError: If every matched scene failed to load.
    """
    resolved_config = config if config is not None else get_default_config()
    roi = _resolve_region(region)
    if isinstance(source, str):
        source = get_source(source, resolved_config, **source_options)
    return run_pipeline(source, roi, time_range, config=resolved_config, token=token)
