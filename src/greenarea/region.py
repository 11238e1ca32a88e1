"""Region of interest model for greenarea.

A ``Region`` is a WGS84 polygon (or multipolygon) parsed from WKT or
GeoJSON, validated once, and then treated as immutable input to the
catalog query and the zonal aggregation.
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path
from typing import Any

from pyproj import Geod, Transformer
from shapely import wkt
from shapely.errors import GEOSException
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as transform_geometry
from shapely.ops import unary_union

from greenarea.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_MIN_LAT = -90.0
_MAX_LAT = 90.0
_MIN_LON = -180.0
_MAX_LON = 180.0
_WGS84 = "EPSG:4326"
_SQ_METRES_PER_HECTARE = 10_000.0


def _compute_utm_zone(lat: float, lon: float) -> int:
    """Compute the UTM zone number from WGS84 coordinates.

    Handles the standard 6-degree zone calculation plus the Norway
    and Svalbard special-case overrides.

    Args:
        lat: Latitude in WGS84 degrees.
        lon: Longitude in WGS84 degrees.

    Returns:
        UTM zone number (1--60).
    """
    zone = min(int((lon + 180.0) // 6.0) + 1, 60)

    # Norway exception: zone 32V is widened to 9 degrees
    if 56.0 <= lat < 64.0 and 3.0 <= lon < 12.0:
        zone = 32

    # Svalbard exceptions: zones 32X, 34X, 36X eliminated
    elif 72.0 <= lat <= 84.0:
        if 0.0 <= lon < 9.0:
            zone = 31
        elif 9.0 <= lon < 21.0:
            zone = 33
        elif 21.0 <= lon < 33.0:
            zone = 35
        elif 33.0 <= lon < 42.0:
            zone = 37

    return zone


def _compute_utm_epsg(lat: float, lon: float) -> int:
    """Compute the EPSG code for the UTM zone covering *lat*/*lon*.

    Returns:
        EPSG code (326XX for northern hemisphere, 327XX for southern).
    """
    zone = _compute_utm_zone(lat, lon)
    hemisphere_offset = 32600 if lat >= 0 else 32700
    return hemisphere_offset + zone


def _geometry_from_geojson(obj: Any) -> BaseGeometry:
    """Extract a geometry from a GeoJSON Geometry, Feature or FeatureCollection.

    FeatureCollections are merged into a single geometry.
    """
    if not isinstance(obj, dict) or "type" not in obj:
        raise ConfigurationError(
            what="Invalid GeoJSON region",
            cause="Expected a GeoJSON object with a 'type' member",
            fix="Pass a Polygon, MultiPolygon, Feature or FeatureCollection",
        )
    kind = obj["type"]
    if kind == "FeatureCollection":
        features = obj.get("features") or []
        if not features:
            raise ConfigurationError(
                what="Invalid GeoJSON region",
                cause="FeatureCollection has no features",
                fix="Add at least one polygon feature",
            )
        return unary_union([_geometry_from_geojson(f) for f in features])
    if kind == "Feature":
        return _geometry_from_geojson(obj.get("geometry"))
    try:
        return shape(obj)
    except (GEOSException, ValueError, TypeError, KeyError, AttributeError) as exc:
        raise ConfigurationError(
            what="Invalid GeoJSON region",
            cause=str(exc) or f"Cannot build a geometry from type {kind!r}",
            fix="Check the GeoJSON coordinates",
        ) from exc


def parse_geometry(text: str) -> BaseGeometry:
    """Parse a WKT or GeoJSON string into a shapely geometry.

    Args:
        text: WKT (``POLYGON ((...))``) or a GeoJSON document.

    Returns:
        The parsed geometry (not yet validated as a region).

    Raises:
        ConfigurationError: If *text* is neither valid WKT nor GeoJSON.
    """
    stripped = text.strip()
    if not stripped:
        raise ConfigurationError(
            what="Empty region definition",
            fix="Pass a WKT polygon, GeoJSON, or a path to a file containing one",
        )
    if stripped.startswith("{"):
        try:
            obj = json.loads(stripped)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                what="Invalid GeoJSON region",
                cause=f"JSON parse error: {exc}",
                fix="Check the GeoJSON syntax",
            ) from None
        return _geometry_from_geojson(obj)
    try:
        return wkt.loads(stripped)
    except (GEOSException, ValueError) as exc:
        raise ConfigurationError(
            what="Invalid WKT region",
            cause=str(exc),
            fix="Pass a WKT polygon such as 'POLYGON ((lon lat, ...))'",
        ) from None


def region(definition: str | Path | BaseGeometry) -> Region:
    """Create a region of interest from WKT, GeoJSON, a file, or a geometry.

    Strings naming an existing file are read from disk first.

    Args:
        definition: WKT or GeoJSON text, a path to a file containing one,
            or a shapely geometry in WGS84 lon/lat.

    Returns:
        A validated ``Region``.

    Raises:
        ConfigurationError: If the definition cannot be parsed, is not a
            (multi)polygon, is empty or invalid, or has coordinates outside
            WGS84 bounds.

    Example:
        >>> roi = region("POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))")
        >>> roi.utm_epsg
        32633
    """
    if isinstance(definition, BaseGeometry):
        geometry = definition
    else:
        path = Path(definition)
        text = str(definition)
        if isinstance(definition, Path) or (len(text) < 4096 and _is_file(path)):
            try:
                text = path.expanduser().read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigurationError(
                    what="Cannot read region file",
                    cause=f"{exc.strerror or exc}: {path}",
                    fix="Check the region file path and permissions",
                ) from None
        geometry = parse_geometry(text)
    return Region(geometry)


def _is_file(path: Path) -> bool:
    try:
        return path.expanduser().is_file()
    except OSError:
        return False


class Region:
    """An immutable WGS84 polygon defining the study area.

    Args:
        geometry: Polygon or MultiPolygon in lon/lat degrees.

    Raises:
        ConfigurationError: If the geometry is not a valid, non-empty
            (multi)polygon inside WGS84 bounds.
    """

    def __init__(self, geometry: BaseGeometry) -> None:
        if not isinstance(geometry, (Polygon, MultiPolygon)):
            raise ConfigurationError(
                what="Region must be a polygon",
                cause=f"Got geometry type {geometry.geom_type}",
                fix="Pass a Polygon or MultiPolygon",
            )
        if geometry.is_empty:
            raise ConfigurationError(
                what="Region is empty",
                fix="Pass a polygon with at least three distinct vertices",
            )
        if not geometry.is_valid:
            from shapely.validation import explain_validity

            raise ConfigurationError(
                what="Region polygon is invalid",
                cause=explain_validity(geometry),
                fix="Fix self-intersections or ring orientation in the polygon",
            )
        minx, miny, maxx, maxy = geometry.bounds
        if not (_MIN_LON <= minx and maxx <= _MAX_LON):
            raise ConfigurationError(
                what=f"Invalid region longitude range: {minx} .. {maxx}",
                cause=f"Longitude must be between {_MIN_LON} and {_MAX_LON}",
                fix="Provide WGS84 coordinates in (lon, lat) order",
            )
        if not (_MIN_LAT <= miny and maxy <= _MAX_LAT):
            raise ConfigurationError(
                what=f"Invalid region latitude range: {miny} .. {maxy}",
                cause=f"Latitude must be between {_MIN_LAT} and {_MAX_LAT}",
                fix="Provide WGS84 coordinates in (lon, lat) order",
            )
        self._geometry = geometry

    @property
    def geometry(self) -> BaseGeometry:
        """The region geometry in WGS84 lon/lat."""
        return self._geometry

    @property
    def crs(self) -> str:
        return _WGS84

    @property
    def bounds(self) -> tuple[float, float, float, float]:
        """Bounding box ``(min_lon, min_lat, max_lon, max_lat)``."""
        minx, miny, maxx, maxy = self._geometry.bounds
        return (minx, miny, maxx, maxy)

    @property
    def centroid(self) -> tuple[float, float]:
        """Centroid as ``(lon, lat)``."""
        c = self._geometry.centroid
        return (c.x, c.y)

    @property
    def utm_zone(self) -> int:
        lon, lat = self.centroid
        return _compute_utm_zone(lat, lon)

    @property
    def utm_epsg(self) -> int:
        lon, lat = self.centroid
        return _compute_utm_epsg(lat, lon)

    @cached_property
    def area_m2(self) -> float:
        """Geodesic area on the WGS84 ellipsoid in square metres."""
        geod = Geod(ellps="WGS84")
        area, _perimeter = geod.geometry_area_perimeter(self._geometry)
        return abs(area)

    @property
    def area_ha(self) -> float:
        return self.area_m2 / _SQ_METRES_PER_HECTARE

    def to_crs(self, crs: str) -> BaseGeometry:
        """Return the region geometry reprojected to *crs*.

        Args:
            crs: Target CRS in any form pyproj accepts.

        Returns:
            The reprojected shapely geometry (the region itself is unchanged).
        """
        if crs == _WGS84:
            return self._geometry
        transformer = Transformer.from_crs(_WGS84, crs, always_xy=True)
        return transform_geometry(transformer.transform, self._geometry)

    def intersects(self, geometry: BaseGeometry) -> bool:
        """Whether *geometry* (WGS84) shares any point with the region."""
        return bool(self._geometry.intersects(geometry))

    def to_geojson(self) -> dict[str, Any]:
        from shapely.geometry import mapping

        return dict(mapping(self._geometry))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Region):
            return NotImplemented
        return bool(self._geometry.normalize() == other._geometry.normalize())

    def __hash__(self) -> int:
        return hash(self._geometry.normalize().wkb)

    def __repr__(self) -> str:
        minx, miny, maxx, maxy = self.bounds
        return (
            f"Region({self._geometry.geom_type}, "
            f"bounds=({minx:.4f}, {miny:.4f}, {maxx:.4f}, {maxy:.4f}), "
            f"area={self.area_ha:.2f} ha)"
        )
