"""Shared test fixtures for the greenarea test suite."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import numpy as np
import pytest
from shapely.geometry import box

from greenarea._types import GridSpec, Raster, Scene
from greenarea.config import Config
from greenarea.region import Region, region
from greenarea.sources.memory import InMemorySource

# Region around UTM zone 33N easting 500000, northing ~5000000 (lon 15, lat ~45.1).
REGION_WKT = "POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))"
FOOTPRINT = box(14.8, 44.9, 15.2, 45.4)

# Hand-computable three-scene stack on a 2x2 grid of 10 m pixels.
NIR_BANDS = (
    [[0.5, 0.3], [0.2, 0.6]],
    [[0.6, 0.4], [0.3, 0.0]],
    [[0.8, 0.5], [0.4, 0.7]],
)
RED_BANDS = (
    [[0.1, 0.3], [0.2, 0.2]],
    [[0.2, 0.2], [0.3, 0.0]],
    [[0.2, 0.1], [0.4, 0.1]],
)


def make_grid(crs: str = "EPSG:32633") -> GridSpec:
    """2x2 grid of 10 m x 10 m pixels near lon 15, lat 45.1."""
    return GridSpec.from_origin(500000.0, 5000020.0, 10.0, 10.0, 2, 2, crs=crs)


def make_scene(
    scene_id: str,
    acquired: date,
    nir: list[list[float]],
    red: list[list[float]],
    grid: GridSpec | None = None,
    cloud_cover: float = 0.05,
) -> Scene:
    grid = grid if grid is not None else make_grid()
    return Scene(
        scene_id=scene_id,
        acquired=acquired,
        footprint=FOOTPRINT,
        cloud_cover=cloud_cover,
        bands={
            "B08": Raster(np.array(nir, dtype=np.float64), grid),
            "B04": Raster(np.array(red, dtype=np.float64), grid),
        },
    )


@pytest.fixture
def test_config() -> Config:
    """Return a fresh default Config instance for test isolation."""
    return Config()


@pytest.fixture
def test_region() -> Region:
    return region(REGION_WKT)


@pytest.fixture
def utm_grid() -> GridSpec:
    return make_grid()


@pytest.fixture
def three_scenes() -> list[Scene]:
    dates = (date(2024, 6, 5), date(2024, 7, 10), date(2024, 8, 15))
    return [
        make_scene(f"S{i + 1}", acquired, nir, red)
        for i, (acquired, nir, red) in enumerate(zip(dates, NIR_BANDS, RED_BANDS))
    ]


@pytest.fixture
def memory_source(three_scenes: list[Scene], test_config: Config) -> InMemorySource:
    return InMemorySource(three_scenes, config=test_config)


@pytest.fixture
def local_scene_root(tmp_path: Path) -> Path:
    """Directory of the three-scene stack as GeoTIFF files plus manifests."""
    from greenarea._geotiff import write_geotiff

    root = tmp_path / "scenes"
    dates = ("2024-06-05", "2024-07-10", "2024-08-15")
    grid = make_grid()
    for i, (acquired, nir, red) in enumerate(zip(dates, NIR_BANDS, RED_BANDS)):
        scene_dir = root / f"S{i + 1}"
        scene_dir.mkdir(parents=True)
        manifest = {
            "acquired": acquired,
            "cloud_cover": 0.05,
            "footprint": FOOTPRINT.__geo_interface__,
        }
        (scene_dir / "scene.json").write_text(json.dumps(manifest))
        write_geotiff(scene_dir / "B08.tif", Raster(np.array(nir, dtype=np.float32), grid))
        write_geotiff(scene_dir / "B04.tif", Raster(np.array(red, dtype=np.float32), grid))
    return root
