"""Local directory data source.

Layout::

    root/
      <scene_id>/
        scene.json      # {"acquired": "2024-06-01", "cloud_cover": 0.1,
                        #  "footprint": <GeoJSON geometry>, "metadata": {...}}
        B04.tif         # one single-band GeoTIFF per band
        B08.tif

``scene_id`` defaults to the directory name when ``scene.json`` omits it.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from shapely.errors import GEOSException
from shapely.geometry import shape

from greenarea._geotiff import read_geotiff
from greenarea._types import CatalogEntry
from greenarea.config import Config
from greenarea.exceptions import ConfigurationError, DataSourceError
from greenarea.sources.base import DataSource, DateRange, SourceStatus, parse_acquired

if TYPE_CHECKING:
    from greenarea._types import Raster
    from greenarea.region import Region

logger = logging.getLogger(__name__)

_MANIFEST_NAME = "scene.json"
_BAND_SUFFIXES = (".tif", ".tiff")


class LocalDirectorySource(DataSource):
    """Scenes stored as GeoTIFF files in per-scene directories.

    Args:
        config: Frozen configuration snapshot.
        root: Directory holding one subdirectory per scene.

    Raises:
        ConfigurationError: If *root* is not an existing directory.

    Example:
        >>> source = LocalDirectorySource(Config(), root="./scenes")  # doctest: +SKIP
        >>> source.name
        'local'
    """

    _name: str = "local"

    def __init__(self, config: Config, root: str | Path) -> None:
        super().__init__(config)
        self._root = Path(root).expanduser()
        if not self._root.is_dir():
            raise ConfigurationError(
                what="Local scene directory not found",
                cause=f"Not a directory: {self._root}",
                fix="Pass --source-root pointing at a directory of scene folders",
            )

    @property
    def root(self) -> Path:
        return self._root

    def search(
        self,
        region: Region,
        time_range: DateRange,
        **params: Any,
    ) -> list[CatalogEntry]:
        start, end = time_range
        max_cloud = float(params.get("max_cloud", 1.0))

        entries: list[CatalogEntry] = []
        for scene_dir in sorted(p for p in self._root.iterdir() if p.is_dir()):
            manifest = scene_dir / _MANIFEST_NAME
            if not manifest.is_file():
                continue
            try:
                entry = self._read_entry(scene_dir, manifest)
            except (
                DataSourceError,
                GEOSException,
                OSError,
                ValueError,
                KeyError,
                TypeError,
            ) as exc:
                logger.warning("Skipping scene directory %s: %s", scene_dir, exc)
                continue
            if not (start <= entry.acquired < end):
                continue
            if entry.cloud_cover >= max_cloud:
                continue
            if not region.intersects(entry.footprint):
                continue
            entries.append(entry)

        logger.debug("Local search in %s matched %d scenes", self._root, len(entries))
        return entries

    def _read_entry(self, scene_dir: Path, manifest: Path) -> CatalogEntry:
        doc: dict[str, Any] = json.loads(manifest.read_text(encoding="utf-8"))
        assets = {
            p.stem: str(p)
            for p in sorted(scene_dir.iterdir())
            if p.suffix.lower() in _BAND_SUFFIXES
        }
        metadata = {str(k): str(v) for k, v in (doc.get("metadata") or {}).items()}
        return CatalogEntry(
            scene_id=str(doc.get("scene_id") or scene_dir.name),
            acquired=parse_acquired(doc["acquired"]),
            footprint=shape(doc["footprint"]),
            cloud_cover=float(doc.get("cloud_cover", 0.0)),
            bands_available=tuple(assets),
            assets=assets,
            metadata=metadata,
        )

    def fetch_band(
        self,
        entry: CatalogEntry,
        band: str,
        timeout: float | None = None,
    ) -> Raster:
        href = entry.assets.get(band)
        if href is None:
            raise self._missing_band(entry, band)
        try:
            return read_geotiff(href)
        except Exception as exc:  # noqa: BLE001
            raise DataSourceError(
                what=f"Cannot read band {band} of scene {entry.scene_id}",
                cause=f"{type(exc).__name__}: {exc}",
                fix=f"Check that {href} is a readable GeoTIFF",
            ) from exc

    def check_status(self) -> SourceStatus:
        if self._root.is_dir():
            return SourceStatus(available=True)
        return SourceStatus(
            available=False,
            message=f"Scene directory {self._root} is no longer available",
        )
