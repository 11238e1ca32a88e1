"""Raster analysis steps: catalog query, band algebra, compositing,
classification and zonal area aggregation."""

from greenarea.analysis.classify import classify, count_masked
from greenarea.analysis.composite import composite
from greenarea.analysis.query import query_catalog, resolve_time_range
from greenarea.analysis.resample import align_to_grid
from greenarea.analysis.vegetation import (
    compute_index,
    compute_ndvi,
    normalized_difference,
)
from greenarea.analysis.zonal import (
    aggregate_area,
    convert_area,
    pixel_areas,
    pixels_in_region,
)

__all__ = [
    "aggregate_area",
    "align_to_grid",
    "classify",
    "composite",
    "compute_index",
    "compute_ndvi",
    "convert_area",
    "count_masked",
    "normalized_difference",
    "pixel_areas",
    "pixels_in_region",
    "query_catalog",
    "resolve_time_range",
]
