"""Temporal compositing of index rasters."""

from __future__ import annotations

import logging
import warnings
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import numpy.typing as npt

from greenarea._types import Raster
from greenarea.exceptions import EmptyInputError, GridMismatchError

logger = logging.getLogger(__name__)

_REDUCERS: dict[str, Callable[..., npt.NDArray[Any]]] = {
    "median": np.nanmedian,
    "mean": np.nanmean,
    "min": np.nanmin,
    "max": np.nanmax,
}


def composite(rasters: Sequence[Raster], reducer: str = "median") -> Raster:
    """Reduce a stack of index rasters to one composite raster per pixel.

    NaN (undefined) values are ignored at each pixel; a pixel that is NaN
    in every input stays NaN in the output.

    Args:
        rasters: Index rasters sharing one grid, in any order.
        reducer: ``"median"`` (default), ``"mean"``, ``"min"`` or ``"max"``.

    Returns:
        Composite raster on the common grid.

    Raises:
        EmptyInputError: If *rasters* is empty.
        GridMismatchError: If the rasters do not share shape, origin,
            resolution and CRS. Resampling is the caller's job
            (see ``greenarea.analysis.resample.align_to_grid``).
        ValueError: If *reducer* is unknown.

    Example:
        >>> import numpy as np
        >>> from greenarea._types import GridSpec, Raster
        >>> grid = GridSpec.from_origin(0.0, 2.0, 1.0, 1.0, 2, 2)
        >>> stack = [Raster(np.full((2, 2), v), grid) for v in (0.1, 0.5, 0.3)]
        >>> float(composite(stack).data[0, 0])
        0.3
    """
    reduce_fn = _REDUCERS.get(reducer)
    if reduce_fn is None:
        valid = ", ".join(sorted(_REDUCERS))
        msg = f"Unknown reducer {reducer!r}; expected one of: {valid}"
        raise ValueError(msg)

    if len(rasters) == 0:
        raise EmptyInputError(
            what="Cannot build a composite from zero rasters",
            cause="No scene produced an index raster",
            fix="Widen the date range or raise the cloud-cover limit",
        )

    grid = rasters[0].grid
    for i, raster in enumerate(rasters[1:], start=1):
        if not raster.grid.is_aligned_with(grid):
            raise GridMismatchError(
                what="Index rasters do not share a common grid",
                cause=f"raster 0: {grid.describe()}; raster {i}: {raster.grid.describe()}",
                fix="Resample rasters onto one grid first (e.g. --resample)",
            )

    out_dtype = np.result_type(*(r.data.dtype for r in rasters))
    if not np.issubdtype(out_dtype, np.floating):
        out_dtype = np.dtype(np.float64)
    stack = np.stack([r.data for r in rasters]).astype(np.float64)

    with warnings.catch_warnings():
        # All-NaN pixels legitimately reduce to NaN.
        warnings.simplefilter("ignore", category=RuntimeWarning)
        reduced = reduce_fn(stack, axis=0)

    logger.debug(
        "Composited %d rasters with %s on %s",
        len(rasters),
        reducer,
        grid.describe(),
    )
    return Raster(data=np.asarray(reduced).astype(out_dtype), grid=grid)
