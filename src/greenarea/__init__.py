"""greenarea: vegetated area of a region from satellite imagery.

Selects scenes from a catalog, computes NDVI per scene, composites the
scenes over time, thresholds the composite and sums the area of the
masked pixels inside the region.

Example:
    >>> import greenarea as ga
    >>>
    >>> roi = ga.region("field.geojson")
    >>> result = ga.vegetation_area(roi, ("2024-06-01", "2024-09-01"),
    ...                             source="local", root="scenes/")
    >>> print(result.summary_line())
"""

from greenarea.__about__ import __version__
from greenarea._types import CancellationToken, GridSpec, Raster, Scene
from greenarea.api import vegetation_area
from greenarea.config import Config, configure, get_default_config
from greenarea.exceptions import (
    ConfigurationError,
    DataSourceError,
    DimensionMismatchError,
    EmptyInputError,
    GreenAreaError,
    GridMismatchError,
    PipelineCancelledError,
)
from greenarea.region import Region, region
from greenarea.results import AreaResult, ResultMetadata

__all__ = [
    # Version
    "__version__",
    # API
    "vegetation_area",
    # Region
    "Region",
    "region",
    # Data model
    "CancellationToken",
    "GridSpec",
    "Raster",
    "Scene",
    # Configuration
    "Config",
    "configure",
    "get_default_config",
    # Results
    "AreaResult",
    "ResultMetadata",
    # Exceptions
    "ConfigurationError",
    "DataSourceError",
    "DimensionMismatchError",
    "EmptyInputError",
    "GreenAreaError",
    "GridMismatchError",
    "PipelineCancelledError",
]
