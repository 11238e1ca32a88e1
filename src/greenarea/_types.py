"""Internal shared types for cross-boundary data contracts.

These types define the data shapes passed between sources, the pipeline,
and the analysis components. numpy arrays are the canonical pixel
representation; every array travels together with the ``GridSpec`` that
places it on the ground.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import numpy as np
import numpy.typing as npt
from affine import Affine
from pyproj import CRS

from greenarea.exceptions import DimensionMismatchError, PipelineCancelledError

if TYPE_CHECKING:
    from shapely.geometry.base import BaseGeometry

BandList = list[str]
"""Ordered list of spectral band identifiers (e.g., ``['B04', 'B08']``)."""

TimeRange = tuple[str, str]
"""ISO-8601 date pair ``(start, end)`` bounding a half-open query window."""

# Transform coefficients closer than this are treated as identical.
_GRID_TOLERANCE = 1e-9


@lru_cache(maxsize=64)
def _crs_equal(a: str, b: str) -> bool:
    if a == b:
        return True
    return bool(CRS.from_user_input(a) == CRS.from_user_input(b))


@dataclass(frozen=True)
class GridSpec:
    """Placement of a 2-D pixel array on the ground.

    Args:
        width: Number of columns.
        height: Number of rows.
        transform: Affine transform from ``(col, row)`` to CRS coordinates.
        crs: Coordinate reference system in any form pyproj accepts.

    Example:
        >>> grid = GridSpec.from_origin(500000.0, 5000020.0, 10.0, 10.0, 2, 2,
        ...                            crs="EPSG:32633")
        >>> grid.shape
        (2, 2)
    """

    width: int
    height: int
    transform: Affine
    crs: str = "EPSG:4326"

    @classmethod
    def from_origin(
        cls,
        west: float,
        north: float,
        xsize: float,
        ysize: float,
        width: int,
        height: int,
        crs: str = "EPSG:4326",
    ) -> GridSpec:
        """Build a north-up grid from its upper-left corner and cell size."""
        transform = Affine(xsize, 0.0, west, 0.0, -ysize, north)
        return cls(width=width, height=height, transform=transform, crs=crs)

    @property
    def shape(self) -> tuple[int, int]:
        """Array shape ``(height, width)``."""
        return (self.height, self.width)

    @property
    def resolution(self) -> tuple[float, float]:
        """Cell size ``(x, y)`` in CRS units, always positive."""
        return (abs(self.transform.a), abs(self.transform.e))

    @property
    def origin(self) -> tuple[float, float]:
        """CRS coordinates of the upper-left corner."""
        return (self.transform.c, self.transform.f)

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box ``(minx, miny, maxx, maxy)`` in CRS units."""
        corners = [
            self.transform * (0, 0),
            self.transform * (self.width, 0),
            self.transform * (0, self.height),
            self.transform * (self.width, self.height),
        ]
        xs = [c[0] for c in corners]
        ys = [c[1] for c in corners]
        return (min(xs), min(ys), max(xs), max(ys))

    def pixel_centers(
        self,
    ) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Return CRS coordinates of every pixel centre.

        Returns:
            Two ``(height, width)`` arrays holding x and y coordinates.
        """
        cols, rows = np.meshgrid(
            np.arange(self.width, dtype=np.float64) + 0.5,
            np.arange(self.height, dtype=np.float64) + 0.5,
        )
        t = self.transform
        xs = t.a * cols + t.b * rows + t.c
        ys = t.d * cols + t.e * rows + t.f
        return xs, ys

    def is_aligned_with(self, other: GridSpec) -> bool:
        """Whether *other* has the same shape, transform and CRS."""
        return (
            self.shape == other.shape
            and self.transform.almost_equals(other.transform, precision=_GRID_TOLERANCE)
            and _crs_equal(self.crs, other.crs)
        )

    def describe(self) -> str:
        """Short human-readable grid description for error messages."""
        xres, yres = self.resolution
        x0, y0 = self.origin
        return (
            f"{self.height}x{self.width} @ ({x0:g}, {y0:g}), "
            f"{xres:g}x{yres:g} {self.crs}"
        )


@dataclass(frozen=True)
class Raster:
    """A 2-D pixel array bound to its grid.

    The raster holds a read-only view of the array: rasters are derived
    once and handed from step to step, never modified in place. The
    caller's own array stays writeable.

    Args:
        data: 2-D array with shape ``grid.shape``.
        grid: Grid that places the array on the ground.

    Raises:
        DimensionMismatchError: If the array shape differs from the grid.
    """

    data: npt.NDArray[Any]
    grid: GridSpec

    def __post_init__(self) -> None:
        data = np.asarray(self.data).view()
        if data.ndim != 2 or data.shape != self.grid.shape:
            raise DimensionMismatchError(
                what="Raster data does not match its grid",
                cause=f"array shape {data.shape}, grid shape {self.grid.shape}",
                fix="Build the GridSpec from the array's own height and width",
            )
        data.flags.writeable = False
        object.__setattr__(self, "data", data)

    @property
    def shape(self) -> tuple[int, int]:
        return self.grid.shape


@dataclass(frozen=True)
class CatalogEntry:
    """A scene discovered by a catalog search, without pixel data.

    Args:
        scene_id: Source-specific unique scene identifier.
        acquired: Acquisition date.
        footprint: Geographic footprint (WGS84).
        cloud_cover: Cloud cover fraction (0.0--1.0).
        bands_available: Band identifiers the scene provides.
        assets: Band identifier to fetchable URI, where the source needs one.
        metadata: Additional source-specific metadata.
    """

    scene_id: str
    acquired: date
    footprint: BaseGeometry
    cloud_cover: float = 0.0
    bands_available: tuple[str, ...] = ()
    assets: Mapping[str, str] = field(default_factory=dict)
    metadata: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Scene:
    """One loaded raster observation.

    Args:
        scene_id: Source-specific unique scene identifier.
        acquired: Acquisition date.
        footprint: Geographic footprint (WGS84).
        cloud_cover: Cloud cover fraction (0.0--1.0).
        bands: Band identifier to pixel raster.
        metadata: Additional source-specific metadata.
    """

    scene_id: str
    acquired: date
    footprint: BaseGeometry
    cloud_cover: float = 0.0
    bands: Mapping[str, Raster] = field(default_factory=dict)
    metadata: Mapping[str, str] = field(default_factory=dict)

    def to_entry(self) -> CatalogEntry:
        """Describe this scene as a catalog entry."""
        return CatalogEntry(
            scene_id=self.scene_id,
            acquired=self.acquired,
            footprint=self.footprint,
            cloud_cover=self.cloud_cover,
            bands_available=tuple(sorted(self.bands)),
            metadata=dict(self.metadata),
        )


@dataclass
class QualityAssessment:
    """Quality assessment produced by the pipeline for every result.

    Args:
        confidence: Overall confidence score (0.0--1.0).
        matched_count: Scenes returned by the catalog query.
        used_count: Scenes that made it into the composite.
        valid_fraction: Fraction of in-region pixels with a defined composite.
        warnings: Human-readable quality warnings.
    """

    confidence: float = 0.0
    matched_count: int = 0
    used_count: int = 0
    valid_fraction: float = 0.0
    warnings: list[str] = field(default_factory=list)


class CancellationToken:
    """Thread-safe flag used to cancel a running pipeline.

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str = "") -> None:
        """Raise ``PipelineCancelledError`` if the token has fired.

        Args:
            stage: Pipeline stage name included in the message.
        """
        if self._event.is_set():
            where = f" during {stage}" if stage else ""
            raise PipelineCancelledError(
                what=f"Pipeline cancelled{where}",
                cause="Cancellation was requested through the token",
            )
