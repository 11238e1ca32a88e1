"""Tests for the Region model and region() factory."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from shapely.geometry import LineString, Point, Polygon, box

from greenarea.exceptions import ConfigurationError
from greenarea.region import Region, _compute_utm_zone, parse_geometry, region

WKT_SQUARE = "POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))"


@pytest.mark.unit
class TestParseGeometry:
    def test_wkt(self) -> None:
        geom = parse_geometry(WKT_SQUARE)
        assert geom.geom_type == "Polygon"

    def test_geojson_geometry(self) -> None:
        text = json.dumps(
            {"type": "Polygon", "coordinates": [[[0, 0], [1, 0], [1, 1], [0, 0]]]}
        )
        assert parse_geometry(text).geom_type == "Polygon"

    def test_geojson_feature_collection_merged(self) -> None:
        fc = {
            "type": "FeatureCollection",
            "features": [
                {"type": "Feature", "geometry": box(0, 0, 1, 1).__geo_interface__},
                {"type": "Feature", "geometry": box(2, 0, 3, 1).__geo_interface__},
            ],
        }
        geom = parse_geometry(json.dumps(fc))
        assert geom.geom_type == "MultiPolygon"

    @pytest.mark.parametrize("text", ["", "POLYGON ((", "{broken", '{"no": "type"}'])
    def test_invalid_text(self, text: str) -> None:
        with pytest.raises(ConfigurationError):
            parse_geometry(text)


@pytest.mark.unit
class TestRegionFactory:
    def test_from_wkt(self) -> None:
        roi = region(WKT_SQUARE)
        assert isinstance(roi, Region)
        assert roi.bounds == pytest.approx((14.9, 45.0, 15.1, 45.3))

    def test_from_file(self, tmp_path: Path) -> None:
        path = tmp_path / "field.geojson"
        path.write_text(json.dumps(box(14.9, 45.0, 15.1, 45.3).__geo_interface__))
        roi = region(path)
        assert roi == region(WKT_SQUARE)

    def test_from_string_path(self, tmp_path: Path) -> None:
        path = tmp_path / "field.wkt"
        path.write_text(WKT_SQUARE)
        assert region(str(path)) == region(WKT_SQUARE)

    def test_from_geometry(self) -> None:
        assert region(box(0, 0, 1, 1)).bounds == (0.0, 0.0, 1.0, 1.0)


@pytest.mark.unit
class TestRegionValidation:
    def test_rejects_non_polygon(self) -> None:
        with pytest.raises(ConfigurationError, match="polygon"):
            Region(LineString([(0, 0), (1, 1)]))

    def test_rejects_point(self) -> None:
        with pytest.raises(ConfigurationError):
            Region(Point(0, 0))

    def test_rejects_empty(self) -> None:
        with pytest.raises(ConfigurationError, match="empty"):
            Region(Polygon())

    def test_rejects_self_intersection(self) -> None:
        bowtie = Polygon([(0, 0), (1, 1), (1, 0), (0, 1), (0, 0)])
        with pytest.raises(ConfigurationError, match="invalid"):
            Region(bowtie)

    def test_rejects_out_of_range_latitude(self) -> None:
        with pytest.raises(ConfigurationError, match="latitude"):
            Region(box(0, 80, 1, 95))

    def test_rejects_out_of_range_longitude(self) -> None:
        with pytest.raises(ConfigurationError, match="longitude"):
            Region(box(170, 0, 190, 1))


@pytest.mark.unit
class TestRegionProperties:
    def test_utm(self) -> None:
        roi = region(WKT_SQUARE)
        assert roi.utm_zone == 33
        assert roi.utm_epsg == 32633

    def test_utm_southern_hemisphere(self) -> None:
        roi = region(box(150.0, -34.0, 151.0, -33.0))
        assert roi.utm_epsg == 32756

    def test_utm_norway_exception(self) -> None:
        assert _compute_utm_zone(60.0, 5.0) == 32

    def test_geodesic_area_of_one_degree_cell_at_equator(self) -> None:
        # 1 deg x 1 deg at the equator is about 12 308 km2 on WGS84.
        roi = region(box(0.0, 0.0, 1.0, 1.0))
        assert roi.area_m2 == pytest.approx(1.2308e10, rel=1e-3)
        assert roi.area_ha == pytest.approx(roi.area_m2 / 10_000)

    def test_to_crs_projects_coordinates(self) -> None:
        roi = region(WKT_SQUARE)
        projected = roi.to_crs("EPSG:32633")
        minx, miny, maxx, maxy = projected.bounds
        assert 480_000 < minx < 500_000 < maxx < 520_000
        assert 4_980_000 < miny < maxy < 5_020_000

    def test_to_crs_wgs84_is_identity(self) -> None:
        roi = region(WKT_SQUARE)
        assert roi.to_crs("EPSG:4326") is roi.geometry

    def test_equality_ignores_vertex_order(self) -> None:
        a = region(box(0, 0, 1, 1, ccw=True))
        b = region(box(0, 0, 1, 1, ccw=False))
        assert a == b
        assert hash(a) == hash(b)

    def test_repr(self) -> None:
        assert repr(region(WKT_SQUARE)).startswith("Region(Polygon")
