"""Pipeline orchestration.

Runs the five analysis steps in order: catalog query, per-scene index
computation on a bounded worker pool, temporal composite (a barrier),
threshold classification and zonal area aggregation.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import date
from typing import TYPE_CHECKING

import numpy as np

from greenarea._types import CancellationToken, QualityAssessment, Raster, Scene
from greenarea.analysis.classify import classify, count_masked
from greenarea.analysis.composite import composite
from greenarea.analysis.query import query_catalog, resolve_time_range
from greenarea.analysis.resample import align_to_grid
from greenarea.analysis.vegetation import compute_index
from greenarea.analysis.zonal import aggregate_area, pixel_areas, pixels_in_region
from greenarea.config import Config, get_default_config
from greenarea.exceptions import DataSourceError, EmptyInputError
from greenarea.results import AreaResult, ResultMetadata

if TYPE_CHECKING:
    from greenarea._types import CatalogEntry
    from greenarea.region import Region
    from greenarea.sources.base import DataSource

logger = logging.getLogger(__name__)

# How often the scheduling loop wakes up to check deadlines and the token.
_POLL_INTERVAL_S: float = 0.05


# ── Per-scene work ─────────────────────────────────────────────────


def _process_scene(
    source: DataSource,
    entry: CatalogEntry,
    config: Config,
    token: CancellationToken,
) -> Raster:
    """Fetch the two index bands of one scene and compute its index raster.

    Runs on a worker thread.

    Raises:
        PipelineCancelledError: If the token fired before the scene started.
        DataSourceError: If a band cannot be fetched.
        GridMismatchError: If the scene's bands are not on a common grid.
    """
    token.raise_if_cancelled(f"scene {entry.scene_id}")
    bands = {
        band: source.fetch_band(entry, band, timeout=config.fetch_timeout_s)
        for band in (config.nir_band, config.red_band)
    }
    scene = Scene(
        scene_id=entry.scene_id,
        acquired=entry.acquired,
        footprint=entry.footprint,
        cloud_cover=entry.cloud_cover,
        bands=bands,
        metadata=entry.metadata,
    )
    return compute_index(scene, config.nir_band, config.red_band)


def _compute_scene_indices(
    source: DataSource,
    entries: list[CatalogEntry],
    config: Config,
    token: CancellationToken,
) -> tuple[dict[str, Raster], list[str], list[str]]:
    """Compute index rasters for *entries* with bounded concurrency.

    At most ``config.concurrency`` scenes are in flight. A scene that has
    not finished ``config.fetch_timeout_s`` seconds after submission is
    dropped and its worker abandoned; it no longer counts against the
    limit. Scenes failing with ``DataSourceError`` are dropped too. Any
    other error propagates.

    Returns:
        ``(indices, failed, timed_out)``: index rasters by scene id, and the
        ids of scenes dropped for a source error or a timeout.

    Raises:
        PipelineCancelledError: If the token fires.
        GridMismatchError: If a scene's bands are not on a common grid.
    """
    indices: dict[str, Raster] = {}
    failed: list[str] = []
    timed_out: list[str] = []

    pending = deque(entries)
    in_flight: dict[Future[Raster], tuple[CatalogEntry, float]] = {}
    # Abandoned workers keep their thread, so size the pool for every scene
    # and let ``concurrency`` bound the live ones.
    executor = ThreadPoolExecutor(
        max_workers=max(len(entries), 1),
        thread_name_prefix="greenarea-scene",
    )
    try:
        while pending or in_flight:
            token.raise_if_cancelled("scene processing")

            while pending and len(in_flight) < config.concurrency:
                entry = pending.popleft()
                future = executor.submit(_process_scene, source, entry, config, token)
                in_flight[future] = (entry, time.monotonic() + config.fetch_timeout_s)
                logger.debug("Submitted scene %s", entry.scene_id)

            done, _ = wait(in_flight, timeout=_POLL_INTERVAL_S, return_when=FIRST_COMPLETED)
            for future in done:
                entry, _deadline = in_flight.pop(future)
                try:
                    indices[entry.scene_id] = future.result()
                except DataSourceError as exc:
                    logger.warning("Dropping scene %s: %s", entry.scene_id, exc.what)
                    failed.append(entry.scene_id)
                else:
                    logger.debug("Scene %s done", entry.scene_id)

            now = time.monotonic()
            for future, (entry, deadline) in list(in_flight.items()):
                if now >= deadline:
                    del in_flight[future]
                    future.cancel()
                    logger.warning(
                        "Dropping scene %s: no result within %.1f s",
                        entry.scene_id,
                        config.fetch_timeout_s,
                    )
                    timed_out.append(entry.scene_id)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return indices, failed, timed_out


# ── Quality assessment helper ──────────────────────────────────────

# Confidence scoring weights.
_USED_WEIGHT: float = 0.7
_COVERAGE_WEIGHT: float = 0.3
_MIN_ADEQUATE_SCENES: int = 3


def _assess_quality(
    matched_count: int,
    used_count: int,
    valid_fraction: float,
    dropped_count: int = 0,
) -> QualityAssessment:
    """Compute the quality assessment attached to every area result.

    The confidence score combines two factors:

    * **Scene usage** (weight 0.7): proportion of matched scenes that made
      it into the composite.
    * **Coverage** (weight 0.3): fraction of region pixels with a defined
      composite value.

    With fewer than three usable scenes the composite is fragile, so
    confidence is capped at 0.15 per scene.

    Args:
        matched_count: Scenes returned by the catalog query (≥ 0).
        used_count: Scenes in the composite (≥ 0).
        valid_fraction: Fraction of region pixels with a defined value.
        dropped_count: Scenes dropped for fetch failures or timeouts.

    Returns:
        ``QualityAssessment`` with confidence in [0.0, 1.0] and warnings.
    """
    matched_count = max(matched_count, 0)
    used_count = max(min(used_count, matched_count), 0)
    valid_fraction = min(max(valid_fraction, 0.0), 1.0)

    warnings: list[str] = []

    if used_count == 0:
        confidence = 0.0
    else:
        confidence = (
            _USED_WEIGHT * (used_count / matched_count)
            + _COVERAGE_WEIGHT * valid_fraction
        )
        if used_count < _MIN_ADEQUATE_SCENES:
            confidence = min(confidence, used_count * 0.15)
        confidence = min(max(confidence, 0.0), 1.0)

    if 0 < used_count < _MIN_ADEQUATE_SCENES:
        warnings.append(
            f"Limited scenes: {used_count} of {matched_count} usable"
        )
    if dropped_count > 0:
        warnings.append(
            f"{dropped_count} of {matched_count} scenes dropped (fetch failure or timeout)"
        )
    if valid_fraction == 0.0:
        warnings.append("No region pixel has a valid index value")
    elif valid_fraction < 1.0:
        warnings.append(
            f"{1.0 - valid_fraction:.0%} of region pixels have no valid index value"
        )

    return QualityAssessment(
        confidence=confidence,
        matched_count=matched_count,
        used_count=used_count,
        valid_fraction=valid_fraction,
        warnings=warnings,
    )


def _valid_fraction(composite_raster: Raster, region: Region) -> float:
    """Fraction of region pixels whose composite value is defined."""
    in_region = pixels_in_region(composite_raster.grid, region)
    total = int(np.count_nonzero(in_region))
    if total == 0:
        return 0.0
    defined = in_region & ~np.isnan(composite_raster.data)
    return int(np.count_nonzero(defined)) / total


# ── Pipeline entry point ───────────────────────────────────────────


def run_pipeline(
    source: DataSource,
    region: Region,
    time_range: tuple[str | date, str | date],
    config: Config | None = None,
    token: CancellationToken | None = None,
) -> AreaResult:
    """Compute the vegetated area of *region* over *time_range*.

    Args:
        source: Catalog and band provider.
        region: Region of interest.
        time_range: Half-open ``(start, end)`` window.
        config: Configuration snapshot. Defaults to ``get_default_config()``.
        token: Optional cancellation token.

    Returns:
        ``AreaResult`` with the area, composite, mask and quality.

    Raises:
        ConfigurationError: If the time range or settings are invalid.
        EmptyInputError: If no scene matched, or none produced an index
            raster without any scene failing.
        DataSourceError: If no scene survived and at least one failed to
            fetch or timed out.
        GridMismatchError: If index rasters are not on a common grid and
            resampling is disabled.
        PipelineCancelledError: If *token* is cancelled.
    """
    config = config if config is not None else get_default_config()
    token = token if token is not None else CancellationToken()
    start, end = resolve_time_range(time_range)

    token.raise_if_cancelled("catalog query")
    entries = query_catalog(source, region, (start, end), config.max_cloud)
    if not entries:
        raise EmptyInputError(
            what="No scenes matched the query",
            cause=(
                f"{source.name}: nothing intersecting the region between "
                f"{start.isoformat()} and {end.isoformat()} "
                f"with cloud cover below {config.max_cloud:.0%}"
            ),
            fix="Widen the date range, raise the cloud-cover limit, or check the region",
        )

    logger.info(
        "Processing %d scenes with up to %d in flight",
        len(entries),
        config.concurrency,
    )
    indices, failed, timed_out = _compute_scene_indices(source, entries, config, token)

    token.raise_if_cancelled("compositing")
    used = [entry for entry in entries if entry.scene_id in indices]
    if not used:
        dropped = len(failed) + len(timed_out)
        if dropped:
            raise DataSourceError(
                what=f"All {len(entries)} matched scenes failed to load",
                cause=f"{len(failed)} fetch failures, {len(timed_out)} timeouts",
                fix="Check the data source status and network, or raise --timeout",
            )
        raise EmptyInputError(
            what="No index rasters to composite",
            cause="Every matched scene was skipped",
            fix="Widen the date range or raise the cloud-cover limit",
        )

    rasters = [indices[entry.scene_id] for entry in used]
    if config.resample_to_common_grid:
        target = rasters[0].grid
        rasters = [align_to_grid(raster, target) for raster in rasters]

    composite_raster = composite(rasters, config.reducer)
    mask = classify(composite_raster, config.ndvi_threshold)
    area = aggregate_area(
        mask,
        pixel_areas(composite_raster.grid),
        region,
        config.area_unit,
    )
    logger.info(
        "Vegetated area: %.6g %s from %d of %d scenes",
        area,
        config.area_unit,
        len(used),
        len(entries),
    )

    quality = _assess_quality(
        matched_count=len(entries),
        used_count=len(used),
        valid_fraction=_valid_fraction(composite_raster, region),
        dropped_count=len(failed) + len(timed_out),
    )

    grid = composite_raster.grid
    minx, miny, maxx, maxy = grid.bounds
    metadata = ResultMetadata(
        source=source.name,
        start=start.isoformat(),
        end=end.isoformat(),
        scene_ids=[entry.scene_id for entry in used],
        timestamps=[entry.acquired.isoformat() for entry in used],
        crs=grid.crs,
        bounds={"minx": minx, "miny": miny, "maxx": maxx, "maxy": maxy},
        resolution=list(grid.resolution),
        reducer=config.reducer,
        threshold=config.ndvi_threshold,
        bands=[config.nir_band, config.red_band],
        masked_pixels=count_masked(mask),
        region_area_m2=region.area_m2,
    )

    return AreaResult(
        area=area,
        unit=config.area_unit,
        composite=composite_raster,
        mask=mask,
        quality=quality,
        metadata=metadata,
    )
