"""Threshold classification of composite rasters."""

from __future__ import annotations

import math

import numpy as np

from greenarea._types import Raster


def classify(composite: Raster, threshold: float) -> Raster:
    """Build a boolean mask of pixels strictly above *threshold*.

    Undefined (NaN) composite pixels are always ``False``.

    Args:
        composite: Composite index raster.
        threshold: Finite threshold value.

    Returns:
        Boolean raster on the composite grid.

    Raises:
        ValueError: If *threshold* is not finite.

    Example:
        >>> import numpy as np
        >>> from greenarea._types import GridSpec, Raster
        >>> grid = GridSpec.from_origin(0.0, 1.0, 1.0, 1.0, 3, 1)
        >>> comp = Raster(np.array([[0.2, 0.5, np.nan]]), grid)
        >>> classify(comp, 0.3).data.tolist()
        [[False, True, False]]
    """
    if not math.isfinite(threshold):
        msg = f"threshold must be finite, got {threshold!r}"
        raise ValueError(msg)

    values = composite.data
    with np.errstate(invalid="ignore"):
        mask = np.greater(values, threshold) & ~np.isnan(values)
    return Raster(data=mask, grid=composite.grid)


def count_masked(mask: Raster) -> int:
    """Number of ``True`` pixels in a mask raster."""
    return int(np.count_nonzero(mask.data))
