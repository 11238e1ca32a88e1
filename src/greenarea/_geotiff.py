"""GeoTIFF read/write helpers shared by sources and results."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np

from greenarea._types import GridSpec, Raster

if TYPE_CHECKING:
    from rasterio.io import DatasetReader

_DEFAULT_CRS = "EPSG:4326"


def raster_from_dataset(dataset: DatasetReader, band_index: int = 1) -> Raster:
    """Read one band of an open rasterio dataset into a float ``Raster``.

    Nodata pixels become NaN. Integer data is promoted to float32 so that
    NaN can be represented.
    """
    arr = dataset.read(band_index)
    out_dtype = arr.dtype if np.issubdtype(arr.dtype, np.floating) else np.float32
    data = arr.astype(out_dtype)
    nodata = dataset.nodata
    if nodata is not None and not np.isnan(nodata):
        data[arr == nodata] = np.nan
    crs = dataset.crs.to_string() if dataset.crs is not None else _DEFAULT_CRS
    grid = GridSpec(
        width=dataset.width,
        height=dataset.height,
        transform=dataset.transform,
        crs=crs,
    )
    return Raster(data=data, grid=grid)


def read_geotiff(path: str | Path, band_index: int = 1) -> Raster:
    import rasterio

    with rasterio.open(path) as dataset:
        return raster_from_dataset(dataset, band_index)


def write_geotiff(path: str | Path, raster: Raster, **profile: Any) -> Path:
    """Write a single-band raster to a GeoTIFF with its grid's CRS.

    Floating point rasters are written with NaN as nodata; boolean
    rasters are written as uint8 0/1.

    Args:
        path: Output file path (created or overwritten).
        raster: Raster to write.
        **profile: Extra rasterio creation options (e.g. ``compress="deflate"``).

    Returns:
        Path of the written file.
    """
    import rasterio

    path = Path(path)
    data = raster.data
    if data.dtype == np.bool_:
        data = data.astype(np.uint8)
    options: dict[str, Any] = {
        "driver": "GTiff",
        "height": raster.grid.height,
        "width": raster.grid.width,
        "count": 1,
        "dtype": data.dtype,
        "crs": raster.grid.crs,
        "transform": raster.grid.transform,
    }
    if np.issubdtype(data.dtype, np.floating):
        options["nodata"] = np.nan
    options.update(profile)
    with rasterio.open(path, "w", **options) as dst:
        dst.write(data, 1)
    return path
