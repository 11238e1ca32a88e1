"""In-memory data source holding fully loaded scenes."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from greenarea.config import Config, get_default_config
from greenarea.sources.base import DataSource, DateRange, SourceStatus

if TYPE_CHECKING:
    from greenarea._types import CatalogEntry, Raster, Scene
    from greenarea.region import Region

logger = logging.getLogger(__name__)


class InMemorySource(DataSource):
    """Data source backed by a list of ``Scene`` objects.

    Useful for notebooks, synthetic data, and tests. Scenes keep their
    insertion order; the catalog query imposes its own stable ordering.

    Args:
        scenes: Loaded scenes to serve.
        config: Optional configuration snapshot.

    Example:
        >>> source = InMemorySource([])
        >>> source.name
        'memory'
    """

    _name: str = "memory"

    def __init__(
        self,
        scenes: Iterable[Scene] = (),
        config: Config | None = None,
    ) -> None:
        super().__init__(config if config is not None else get_default_config())
        self._scenes: dict[str, Scene] = {}
        for scene in scenes:
            self.add(scene)

    def add(self, scene: Scene) -> None:
        """Register *scene*, replacing any scene with the same id."""
        self._scenes[scene.scene_id] = scene

    def __len__(self) -> int:
        return len(self._scenes)

    def search(
        self,
        region: Region,
        time_range: DateRange,
        **params: Any,
    ) -> list[CatalogEntry]:
        start, end = time_range
        max_cloud = float(params.get("max_cloud", 1.0))
        entries = [
            scene.to_entry()
            for scene in self._scenes.values()
            if start <= scene.acquired < end
            and scene.cloud_cover < max_cloud
            and region.intersects(scene.footprint)
        ]
        logger.debug("In-memory search matched %d of %d scenes", len(entries), len(self))
        return entries

    def fetch_band(
        self,
        entry: CatalogEntry,
        band: str,
        timeout: float | None = None,
    ) -> Raster:
        scene = self._scenes.get(entry.scene_id)
        if scene is None or band not in scene.bands:
            raise self._missing_band(entry, band)
        return scene.bands[band]

    def check_status(self) -> SourceStatus:
        return SourceStatus(available=True, message=f"{len(self)} scenes loaded")
