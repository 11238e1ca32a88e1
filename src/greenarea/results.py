"""Result object model for vegetation area analysis."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import numpy as np
from pydantic import BaseModel, Field

from greenarea._geotiff import write_geotiff
from greenarea._types import QualityAssessment, Raster

if TYPE_CHECKING:
    import pandas as pd

_UNIT_LABELS: dict[str, str] = {
    "m2": "m²",
    "ha": "ha",
    "km2": "km²",
    "acre": "acres",
}


class ResultMetadata(BaseModel):
    """Metadata describing how an area result was produced.

    Uses pydantic (not a dataclass) because this is the part of the
    result that is serialized to JSON.

    Attributes:
        source: Data source name (e.g., ``"stac"``).
        start: First day of the query window (ISO-8601).
        end: Day after the query window (ISO-8601, exclusive).
        scene_ids: Scenes that contributed to the composite, in catalog order.
        timestamps: Acquisition dates of those scenes (ISO-8601).
        crs: CRS of the composite grid.
        bounds: Composite grid bounding box ``{"minx", "miny", "maxx", "maxy"}``.
        resolution: Composite cell size ``[x, y]`` in CRS units.
        reducer: Temporal reducer used for the composite.
        threshold: Index threshold used for the mask.
        bands: ``[numerator, denominator]`` band identifiers.
        masked_pixels: Mask pixels above the threshold (inside or outside
            the region).
        region_area_m2: Geodesic area of the region of interest.

    Example:
        >>> meta = ResultMetadata(source="memory", reducer="median")
        >>> meta.scene_ids
        []
    """

    source: str = ""
    start: str = ""
    end: str = ""
    scene_ids: list[str] = Field(default_factory=list)
    timestamps: list[str] = Field(default_factory=list)
    crs: str = ""
    bounds: dict[str, float] = Field(default_factory=dict)
    resolution: list[float] = Field(default_factory=list)
    reducer: str = "median"
    threshold: float = 0.0
    bands: list[str] = Field(default_factory=list)
    masked_pixels: int = 0
    region_area_m2: float | None = None


@dataclass
class AreaResult:
    """Vegetated area of a region, with the rasters it was derived from.

    Dataclass (not pydantic) because numpy rasters are part of the payload.

    Attributes:
        area: Non-negative area in ``unit``.
        unit: Area unit (``m2``, ``ha``, ``km2`` or ``acre``).
        composite: Composite index raster.
        mask: Boolean mask raster on the composite grid.
        quality: Confidence score and quality warnings.
        metadata: Serializable provenance information.
    """

    area: float
    unit: str
    composite: Raster
    mask: Raster
    quality: QualityAssessment = field(default_factory=QualityAssessment)
    metadata: ResultMetadata = field(default_factory=ResultMetadata)

    @property
    def confidence(self) -> float:
        return self.quality.confidence

    @property
    def warnings(self) -> list[str]:
        return self.quality.warnings

    @property
    def area_key(self) -> str:
        """Summary key for the area value, e.g. ``"area_ha"``."""
        return f"area_{self.unit}"

    def summary_line(self) -> str:
        """One-line JSON summary, e.g. ``{"area_ha": 12.5}``."""
        return json.dumps({self.area_key: self.area})

    def summary(self) -> dict[str, Any]:
        """Return the area plus quality and metadata as a JSON-ready dict."""
        return {
            self.area_key: self.area,
            "confidence": self.quality.confidence,
            "scenes_matched": self.quality.matched_count,
            "scenes_used": self.quality.used_count,
            "valid_fraction": self.quality.valid_fraction,
            "warnings": list(self.quality.warnings),
            "metadata": self.metadata.model_dump(),
        }

    def to_json(self, path: str | Path) -> Path:
        """Write ``summary()`` to a JSON file.

        Args:
            path: Output file path (created or overwritten).

        Returns:
            Path object pointing to the written file.
        """
        path = Path(path)
        path.write_text(
            json.dumps(self.summary(), indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        return path

    def to_geotiff(self, path: str | Path, layer: str = "composite") -> Path:
        """Export the composite (or the mask) to a GeoTIFF file.

        Args:
            path: Output file path (created or overwritten).
            layer: ``"composite"`` (float, NaN nodata) or ``"mask"`` (uint8).

        Returns:
            Path object pointing to the written file.

        Raises:
            ValueError: If *layer* is unknown.
        """
        if layer == "composite":
            raster = self.composite
        elif layer == "mask":
            raster = self.mask
        else:
            msg = f"Unknown layer {layer!r}; expected 'composite' or 'mask'"
            raise ValueError(msg)
        return write_geotiff(path, raster, compress="deflate")

    def to_dataframe(self) -> pd.DataFrame:
        """Export the result as a one-row pandas DataFrame.

        Returns:
            DataFrame with area, quality counts, period and composite
            statistics.
        """
        import pandas as pd

        values = self.composite.data
        defined = values[~np.isnan(values)] if values.size else values
        row: dict[str, Any] = {
            "area": self.area,
            "unit": self.unit,
            "confidence": self.quality.confidence,
            "source": self.metadata.source,
            "period_start": self.metadata.start or None,
            "period_end": self.metadata.end or None,
            "scenes_matched": self.quality.matched_count,
            "scenes_used": self.quality.used_count,
            "masked_pixels": self.metadata.masked_pixels,
            "crs": self.composite.grid.crs,
            "index_min": float(defined.min()) if defined.size else float("nan"),
            "index_max": float(defined.max()) if defined.size else float("nan"),
            "index_mean": float(defined.mean()) if defined.size else float("nan"),
        }
        return pd.DataFrame([row])

    def __repr__(self) -> str:
        """Narrative summary; never shows raw arrays."""
        label = _UNIT_LABELS.get(self.unit, self.unit)
        area = "n/a" if math.isnan(self.area) else f"{self.area:.4g} {label}"
        lines = [
            "Vegetated area",
            f"  Area: {area}",
            f"  Scenes: {self.quality.used_count} of {self.quality.matched_count} used",
        ]
        if self.metadata.start and self.metadata.end:
            lines.append(f"  Period: {self.metadata.start} to {self.metadata.end}")
        lines.append(f"  Confidence: {self.quality.confidence:.2f}")
        for warning in self.quality.warnings:
            lines.append(f"  Warning: {warning}")
        return "\n".join(lines)
