"""Explicit resampling of rasters onto a target grid.

The compositor refuses unaligned inputs; callers that want to combine
scenes from different grids resample them here first.
"""

from __future__ import annotations

import logging

import numpy as np
from rasterio.enums import Resampling
from rasterio.warp import reproject

from greenarea._types import GridSpec, Raster

logger = logging.getLogger(__name__)

_RESAMPLING_METHODS: dict[str, Resampling] = {
    "nearest": Resampling.nearest,
    "bilinear": Resampling.bilinear,
    "average": Resampling.average,
}


def align_to_grid(
    raster: Raster,
    grid: GridSpec,
    resampling: str = "nearest",
) -> Raster:
    """Reproject *raster* onto *grid*.

    Pixels of the target grid not covered by the source stay NaN.
    A raster already aligned with *grid* is returned unchanged.

    Args:
        raster: Source raster.
        grid: Target grid (shape, transform and CRS).
        resampling: ``"nearest"`` (default), ``"bilinear"`` or ``"average"``.

    Returns:
        A float raster on *grid*.

    Raises:
        ValueError: If *resampling* is unknown.
    """
    method = _RESAMPLING_METHODS.get(resampling)
    if method is None:
        valid = ", ".join(sorted(_RESAMPLING_METHODS))
        msg = f"Unknown resampling method {resampling!r}; expected one of: {valid}"
        raise ValueError(msg)

    if raster.grid.is_aligned_with(grid):
        return raster

    source = raster.data.astype(np.float64)
    destination = np.full(grid.shape, np.nan, dtype=np.float64)
    reproject(
        source=source,
        destination=destination,
        src_transform=raster.grid.transform,
        src_crs=raster.grid.crs,
        src_nodata=np.nan,
        dst_transform=grid.transform,
        dst_crs=grid.crs,
        dst_nodata=np.nan,
        resampling=method,
    )
    logger.debug("Resampled %s onto %s", raster.grid.describe(), grid.describe())

    out_dtype = raster.data.dtype if np.issubdtype(raster.data.dtype, np.floating) else np.float32
    return Raster(data=destination.astype(out_dtype), grid=grid)
