"""Tests for the in-memory data source and the source interface."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from greenarea._types import Scene
from greenarea.exceptions import DataSourceError
from greenarea.region import Region
from greenarea.sources.base import DataSource, parse_acquired
from greenarea.sources.memory import InMemorySource

WINDOW = (date(2024, 6, 1), date(2024, 9, 1))


@pytest.mark.unit
class TestParseAcquired:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("2024-06-15", date(2024, 6, 15)),
            ("2024-06-15T10:05:31Z", date(2024, 6, 15)),
            ("2024-06-15T10:05:31.024000Z", date(2024, 6, 15)),
            (datetime(2024, 6, 15, 23, 0, tzinfo=timezone.utc), date(2024, 6, 15)),
            (date(2024, 6, 15), date(2024, 6, 15)),
        ],
    )
    def test_valid(self, value: object, expected: date) -> None:
        assert parse_acquired(value) == expected

    def test_invalid(self) -> None:
        with pytest.raises(DataSourceError):
            parse_acquired("mid-June")


@pytest.mark.unit
class TestDataSourceContract:
    def test_cannot_instantiate_abstract_base(self) -> None:
        with pytest.raises(TypeError):
            DataSource(config=None)  # type: ignore[abstract, arg-type]


@pytest.mark.unit
class TestInMemorySource:
    def test_search_returns_matching_scenes(
        self, memory_source: InMemorySource, test_region: Region
    ) -> None:
        entries = memory_source.search(test_region, WINDOW, max_cloud=0.2)
        assert sorted(e.scene_id for e in entries) == ["S1", "S2", "S3"]

    def test_search_applies_window(
        self, memory_source: InMemorySource, test_region: Region
    ) -> None:
        window = (date(2024, 7, 1), date(2024, 8, 15))
        entries = memory_source.search(test_region, window, max_cloud=0.2)
        assert [e.scene_id for e in entries] == ["S2"]

    def test_search_applies_cloud_limit(
        self, memory_source: InMemorySource, test_region: Region
    ) -> None:
        assert memory_source.search(test_region, WINDOW, max_cloud=0.05) == []

    def test_fetch_band(self, memory_source: InMemorySource, three_scenes: list[Scene]) -> None:
        entry = three_scenes[0].to_entry()
        assert memory_source.fetch_band(entry, "B08") is three_scenes[0].bands["B08"]

    def test_fetch_missing_band(
        self, memory_source: InMemorySource, three_scenes: list[Scene]
    ) -> None:
        with pytest.raises(DataSourceError, match="B11"):
            memory_source.fetch_band(three_scenes[0].to_entry(), "B11")

    def test_add_replaces_same_id(self, three_scenes: list[Scene]) -> None:
        source = InMemorySource(three_scenes)
        source.add(three_scenes[0])
        assert len(source) == 3

    def test_status(self, memory_source: InMemorySource) -> None:
        status = memory_source.check_status()
        assert status.available
        assert "3 scenes" in status.message
