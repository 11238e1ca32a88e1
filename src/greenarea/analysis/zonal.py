"""Zonal area aggregation.

Sums the physical area of masked pixels inside a region of interest.

Pixel/region overlap policy: a pixel belongs to the region when its
centre lies inside the region or on its boundary. Partially covered
pixels therefore count fully or not at all; the result is an
approximation whose error shrinks with pixel size.
"""

from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
import shapely
from pyproj import CRS, Geod

from greenarea.exceptions import ConfigurationError, DimensionMismatchError

if TYPE_CHECKING:
    from greenarea._types import GridSpec, Raster
    from greenarea.region import Region

logger = logging.getLogger(__name__)

# Square metres per output unit.
_UNIT_FACTORS: dict[str, float] = {
    "m2": 1.0,
    "ha": 10_000.0,
    "km2": 1_000_000.0,
    "acre": 4_046.856_422_4,
}

_WGS84 = Geod(ellps="WGS84")


@lru_cache(maxsize=32)
def _crs(crs: str) -> CRS:
    return CRS.from_user_input(crs)


def convert_area(area_m2: float, unit: str) -> float:
    """Convert square metres to *unit* (``m2``, ``ha``, ``km2`` or ``acre``).

    Raises:
        ConfigurationError: If *unit* is unknown.

    Example:
        >>> convert_area(300.0, "ha")
        0.03
    """
    factor = _UNIT_FACTORS.get(unit)
    if factor is None:
        valid = ", ".join(_UNIT_FACTORS)
        raise ConfigurationError(
            what=f"Unknown area unit: {unit!r}",
            cause=f"Valid units are: {valid}",
            fix=f"Use one of: {valid}",
        )
    return area_m2 / factor


def _authalic_q(lat_rad: npt.NDArray[np.float64], e: float) -> npt.NDArray[np.float64]:
    """The ``q`` function of the ellipsoidal equal-area (authalic) latitude."""
    sin_phi = np.sin(lat_rad)
    e_sin = e * sin_phi
    return (1.0 - e * e) * (
        sin_phi / (1.0 - e_sin * e_sin)
        - np.log((1.0 - e_sin) / (1.0 + e_sin)) / (2.0 * e)
    )


def _geographic_pixel_areas(grid: GridSpec) -> npt.NDArray[np.float64]:
    """Per-pixel ellipsoidal area in m² for a lon/lat grid."""
    t = grid.transform
    if t.b == 0.0 and t.d == 0.0:
        # North-up: cells are bounded by meridians and parallels, so the
        # area is exact and depends on the row only.
        e = math.sqrt(_WGS84.es)
        rows = np.arange(grid.height + 1, dtype=np.float64)
        lat_edges = np.clip(t.f + rows * t.e, -90.0, 90.0)
        q = _authalic_q(np.radians(lat_edges), e)
        dlon = math.radians(abs(t.a))
        row_areas = 0.5 * _WGS84.a * _WGS84.a * dlon * np.abs(np.diff(q))
        return np.repeat(row_areas[:, np.newaxis], grid.width, axis=1)

    # Rotated grids: geodesic area of each pixel's corner polygon.
    areas = np.empty(grid.shape, dtype=np.float64)
    for row in range(grid.height):
        for col in range(grid.width):
            corners = [
                t * (col, row),
                t * (col + 1, row),
                t * (col + 1, row + 1),
                t * (col, row + 1),
            ]
            lons = [c[0] for c in corners]
            lats = [c[1] for c in corners]
            area, _perimeter = _WGS84.polygon_area_perimeter(lons, lats)
            areas[row, col] = abs(area)
    return areas


def pixel_areas(grid: GridSpec) -> npt.NDArray[np.float64]:
    """Physical area of every pixel of *grid* in square metres.

    Projected grids use the cell size (``|det(transform)|``) scaled by the
    CRS linear unit; geographic grids use the area on the WGS84 ellipsoid.

    Args:
        grid: Grid to measure.

    Returns:
        ``(height, width)`` float64 array of pixel areas in m².
    """
    crs = _crs(grid.crs)
    if crs.is_geographic:
        return _geographic_pixel_areas(grid)

    unit_factor = 1.0
    if crs.axis_info:
        unit_factor = float(crs.axis_info[0].unit_conversion_factor or 1.0)
    area = abs(grid.transform.determinant) * unit_factor * unit_factor
    return np.full(grid.shape, area, dtype=np.float64)


def pixels_in_region(
    grid: GridSpec,
    region: Region,
    where: npt.NDArray[np.bool_] | None = None,
) -> npt.NDArray[np.bool_]:
    """Boolean array marking pixels whose centre lies in *region*.

    Centres on the region boundary count as inside.

    Args:
        grid: Pixel grid.
        region: Region of interest (reprojected to the grid CRS).
        where: Optional pre-selection; pixels outside it are ``False``
            without being tested.

    Returns:
        ``(height, width)`` boolean array.
    """
    inside = np.zeros(grid.shape, dtype=np.bool_)
    candidates = np.ones(grid.shape, dtype=np.bool_) if where is None else where
    if not candidates.any():
        return inside

    geometry = region.to_crs(grid.crs)
    shapely.prepare(geometry)
    xs, ys = grid.pixel_centers()
    inside[candidates] = shapely.intersects_xy(geometry, xs[candidates], ys[candidates])
    return inside


def _as_selection(mask: Raster) -> npt.NDArray[np.bool_]:
    data = np.asarray(mask.data)
    if data.dtype == np.bool_:
        return data
    if np.issubdtype(data.dtype, np.floating):
        return (data != 0) & ~np.isnan(data)
    return data != 0


def aggregate_area(
    mask: Raster,
    pixel_area: float | npt.NDArray[Any],
    region: Region,
    unit: str = "ha",
) -> float:
    """Sum the area of masked pixels whose centre lies inside *region*.

    Args:
        mask: Boolean (or 0/non-zero) mask raster.
        pixel_area: Per-pixel area in m², either one value for every
            pixel or an array with the mask's shape.
        region: Region of interest.
        unit: Output unit (``m2``, ``ha``, ``km2`` or ``acre``).

    Returns:
        Non-negative area in *unit*.

    Raises:
        DimensionMismatchError: If *pixel_area* is an array whose shape
            differs from the mask.
        ValueError: If any pixel area is negative or not finite.
        ConfigurationError: If *unit* is unknown.
    """
    convert_area(0.0, unit)

    areas = np.asarray(pixel_area, dtype=np.float64)
    if areas.ndim == 0:
        areas = np.full(mask.shape, float(areas), dtype=np.float64)
    elif areas.shape != mask.shape:
        raise DimensionMismatchError(
            what="Mask and pixel-area grids differ in size",
            cause=f"mask shape {mask.shape}, pixel-area shape {areas.shape}",
            fix="Derive pixel areas from the mask's own grid (pixel_areas(mask.grid))",
        )
    if not np.all(np.isfinite(areas)) or np.any(areas < 0):
        msg = "pixel areas must be finite and non-negative"
        raise ValueError(msg)

    selected = _as_selection(mask)
    counted = pixels_in_region(mask.grid, region, where=selected)

    total_m2 = math.fsum(areas[counted].tolist())
    logger.debug(
        "Zonal sum: %d masked pixels, %d inside region, %.3f m2",
        int(np.count_nonzero(selected)),
        int(np.count_nonzero(counted)),
        total_m2,
    )
    return convert_area(max(total_m2, 0.0), unit)
