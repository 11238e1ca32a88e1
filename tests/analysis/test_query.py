"""Tests for the image catalog query."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
from shapely.geometry import box

from greenarea._types import CatalogEntry
from greenarea.analysis.query import query_catalog, resolve_time_range
from greenarea.exceptions import ConfigurationError
from greenarea.region import Region, region

ROI = "POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))"
INSIDE = box(14.8, 44.9, 15.2, 45.4)
ELSEWHERE = box(20.0, 50.0, 21.0, 51.0)


def _entry(
    scene_id: str,
    acquired: date,
    cloud_cover: float = 0.1,
    footprint: Any = INSIDE,
) -> CatalogEntry:
    return CatalogEntry(
        scene_id=scene_id,
        acquired=acquired,
        footprint=footprint,
        cloud_cover=cloud_cover,
    )


def _source(entries: list[CatalogEntry]) -> MagicMock:
    source = MagicMock()
    source.name = "mock"
    source.search.return_value = entries
    return source


@pytest.fixture
def roi() -> Region:
    return region(ROI)


@pytest.mark.unit
class TestResolveTimeRange:
    def test_iso_strings(self) -> None:
        assert resolve_time_range(("2024-06-01", "2024-09-01")) == (
            date(2024, 6, 1),
            date(2024, 9, 1),
        )

    def test_date_and_datetime_objects(self) -> None:
        start, end = resolve_time_range((date(2024, 6, 1), datetime(2024, 9, 1, 12, 30)))
        assert start == date(2024, 6, 1)
        assert end == date(2024, 9, 1)

    @pytest.mark.parametrize(
        "time_range",
        [
            ("2024-09-01", "2024-06-01"),
            ("2024-06-01", "2024-06-01"),
            ("2024-13-01", "2024-14-01"),
            ("yesterday", "2024-06-01"),
        ],
    )
    def test_invalid_ranges(self, time_range: tuple[str, str]) -> None:
        with pytest.raises(ConfigurationError):
            resolve_time_range(time_range)

    def test_not_a_pair(self) -> None:
        with pytest.raises(ConfigurationError, match="pair"):
            resolve_time_range(("2024-06-01",))  # type: ignore[arg-type]


@pytest.mark.unit
class TestQueryCatalog:
    def test_window_is_half_open(self, roi: Region) -> None:
        source = _source(
            [
                _entry("before", date(2024, 5, 31)),
                _entry("first-day", date(2024, 6, 1)),
                _entry("last-day", date(2024, 8, 31)),
                _entry("end-day", date(2024, 9, 1)),
            ]
        )

        entries = query_catalog(source, roi, ("2024-06-01", "2024-09-01"), 0.5)

        assert [e.scene_id for e in entries] == ["first-day", "last-day"]

    def test_cloud_cover_strictly_below_limit(self, roi: Region) -> None:
        source = _source(
            [
                _entry("clear", date(2024, 6, 2), cloud_cover=0.19),
                _entry("at-limit", date(2024, 6, 3), cloud_cover=0.2),
                _entry("cloudy", date(2024, 6, 4), cloud_cover=0.8),
            ]
        )

        entries = query_catalog(source, roi, ("2024-06-01", "2024-09-01"), 0.2)

        assert [e.scene_id for e in entries] == ["clear"]

    def test_footprint_must_intersect_region(self, roi: Region) -> None:
        source = _source(
            [
                _entry("here", date(2024, 6, 2)),
                _entry("there", date(2024, 6, 2), footprint=ELSEWHERE),
            ]
        )

        entries = query_catalog(source, roi, ("2024-06-01", "2024-09-01"), 0.5)

        assert [e.scene_id for e in entries] == ["here"]

    def test_stable_order_and_dedup(self, roi: Region) -> None:
        source = _source(
            [
                _entry("b", date(2024, 7, 1)),
                _entry("a", date(2024, 7, 1)),
                _entry("c", date(2024, 6, 15)),
                _entry("a", date(2024, 7, 1), cloud_cover=0.3),
            ]
        )

        entries = query_catalog(source, roi, ("2024-06-01", "2024-09-01"), 0.5)

        assert [e.scene_id for e in entries] == ["c", "a", "b"]
        assert entries[1].cloud_cover == 0.1

    def test_empty_result_is_not_an_error(self, roi: Region) -> None:
        assert query_catalog(_source([]), roi, ("2024-06-01", "2024-09-01"), 0.5) == []

    def test_source_receives_resolved_window(self, roi: Region) -> None:
        source = _source([])

        query_catalog(source, roi, ("2024-06-01", "2024-09-01"), 0.25)

        source.search.assert_called_once_with(
            roi, (date(2024, 6, 1), date(2024, 9, 1)), max_cloud=0.25
        )

    @pytest.mark.parametrize("max_cloud", [-0.1, 1.5, float("nan")])
    def test_invalid_max_cloud(self, roi: Region, max_cloud: float) -> None:
        with pytest.raises(ConfigurationError, match="cloud"):
            query_catalog(_source([]), roi, ("2024-06-01", "2024-09-01"), max_cloud)
