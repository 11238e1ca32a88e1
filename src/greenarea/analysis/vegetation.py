"""Vegetation index computation.

Pure computation module: no HTTP, no file I/O, no source interaction.
Takes numpy arrays (or scenes of rasters) in, returns the same out.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt

from greenarea._types import Raster
from greenarea.exceptions import DataSourceError, GridMismatchError

if TYPE_CHECKING:
    from greenarea._types import Scene


def normalized_difference(
    a: npt.NDArray[Any],
    b: npt.NDArray[Any],
) -> npt.NDArray[np.floating[Any]]:
    """Compute ``(a - b) / (a + b)`` per pixel.

    Where ``a + b == 0`` the result is NaN (undefined) rather than a
    division fault; NaN inputs propagate to NaN. Arithmetic is done in
    float64.

    Parameters:
        a: First band array.
        b: Second band array, same shape.

    Returns:
        Index array with the input float dtype (float32 for integer
        inputs). Values are in ``[-1, 1]`` for non-negative inputs.
    """
    a_f = a.astype(np.float64)
    b_f = b.astype(np.float64)

    denominator = a_f + b_f

    with np.errstate(divide="ignore", invalid="ignore"):
        index: npt.NDArray[np.floating[Any]] = np.where(
            denominator == 0.0,
            np.nan,
            (a_f - b_f) / denominator,
        )

    out_dtype = a.dtype if np.issubdtype(a.dtype, np.floating) else np.float32
    return index.astype(out_dtype)


def compute_ndvi(
    red: npt.NDArray[Any],
    nir: npt.NDArray[Any],
) -> npt.NDArray[np.floating[Any]]:
    """Compute Normalised Difference Vegetation Index (NDVI).

    NDVI = (NIR - Red) / (NIR + Red).  Masked (NaN) pixels propagate
    to NaN in the output.  Where ``nir + red == 0`` the result is NaN.

    Parameters:
        red: Red band array (e.g., Sentinel-2 B04), shape ``(H, W)``.
        nir: Near-infrared band array (e.g., Sentinel-2 B08), same shape.

    Returns:
        NDVI array with the same shape as the inputs.

    Example:
        >>> import numpy as np
        >>> red = np.array([[0.1, 0.2]], dtype=np.float32)
        >>> nir = np.array([[0.5, 0.4]], dtype=np.float32)
        >>> compute_ndvi(red, nir).shape
        (1, 2)
    """
    return normalized_difference(nir, red)


def compute_index(
    scene: Scene,
    numerator_band: str = "B08",
    denominator_band: str = "B04",
) -> Raster:
    """Compute a normalized difference index raster for one scene.

    ``index = (numerator - denominator) / (numerator + denominator)``;
    with the default bands this is NDVI.

    Args:
        scene: Loaded scene holding both bands.
        numerator_band: Band used as the positive term (NIR for NDVI).
        denominator_band: Band subtracted from it (Red for NDVI).

    Returns:
        Index raster on the scene's native grid.

    Raises:
        DataSourceError: If the scene lacks one of the bands.
        GridMismatchError: If the two bands are not on the same grid.
    """
    rasters = []
    for band in (numerator_band, denominator_band):
        raster = scene.bands.get(band)
        if raster is None:
            available = ", ".join(sorted(scene.bands)) or "none"
            raise DataSourceError(
                what=f"Scene {scene.scene_id} has no band {band!r}",
                cause=f"Available bands: {available}",
                fix="Choose band identifiers the data source provides",
            )
        rasters.append(raster)

    numerator, denominator = rasters
    if not numerator.grid.is_aligned_with(denominator.grid):
        raise GridMismatchError(
            what=f"Bands of scene {scene.scene_id} are not on a common grid",
            cause=(
                f"{numerator_band}: {numerator.grid.describe()}; "
                f"{denominator_band}: {denominator.grid.describe()}"
            ),
            fix="Resample one band onto the other's grid before computing the index",
        )

    return Raster(
        data=normalized_difference(numerator.data, denominator.data),
        grid=numerator.grid,
    )
