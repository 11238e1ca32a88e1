"""Data source interface contract and shared helpers.

Defines the ``DataSource`` abstract base class that every catalog backend
(in-memory, local directory, STAC API) implements, so the pipeline never
depends on where scenes come from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from greenarea.config import Config
from greenarea.exceptions import DataSourceError

if TYPE_CHECKING:
    from greenarea._types import CatalogEntry, Raster
    from greenarea.region import Region

DateRange = tuple[date, date]
"""Resolved half-open date window ``[start, end)``."""


@dataclass
class SourceStatus:
    """Operational status of a data source.

    Args:
        available: ``True`` if the source is operational.
        message: Human-readable status message (empty when healthy).

    Example:
        >>> status = SourceStatus(available=True)
        >>> status.message
        ''
    """

    available: bool = False
    message: str = ""


def parse_acquired(value: Any) -> date:
    """Parse an acquisition timestamp into a ``date``.

    Accepts ``date``/``datetime`` objects and ISO-8601 strings, including
    the ``Z`` suffix STAC items use.

    Raises:
        DataSourceError: If *value* is not a recognisable date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise DataSourceError(
            what="Unrecognised acquisition date",
            cause=f"Cannot parse {value!r} as an ISO-8601 date",
            fix="Check the scene metadata produced by the data source",
        ) from None


class DataSource(ABC):
    """Abstract base class for scene catalogs.

    Subclasses implement catalog search, per-band fetch, and status
    checking, and set the ``_name`` class attribute to a unique
    identifier used by the source registry.

    Args:
        config: Frozen configuration snapshot for this source instance.
    """

    _name: str = ""

    def __init__(self, config: Config) -> None:
        self._config = config

    @property
    def name(self) -> str:
        """Source identifier used in the registry and in result metadata."""
        return self._name

    @property
    def config(self) -> Config:
        return self._config

    @abstractmethod
    def search(
        self,
        region: Region,
        time_range: DateRange,
        **params: Any,
    ) -> list[CatalogEntry]:
        """Search the catalog for scenes over *region* in *time_range*.

        Returns an empty list when no data matches the query.
        Never raises on missing data, only on infrastructure failures.

        Args:
            region: Region of interest.
            time_range: Half-open date window ``[start, end)``.
            **params: Source-specific parameters. Every source understands
                ``max_cloud`` (float, 0.0--1.0).

        Returns:
            List of matching catalog entries, empty if none found.

        Raises:
            DataSourceError: If the catalog cannot be reached.
        """
        ...

    @abstractmethod
    def fetch_band(
        self,
        entry: CatalogEntry,
        band: str,
        timeout: float | None = None,
    ) -> Raster:
        """Fetch one band of a catalog entry as a raster.

        Handles retries internally. Raises ``DataSourceError`` only
        after all retry attempts are exhausted.

        Args:
            entry: Catalog entry returned by ``search()``.
            band: Band identifier (e.g., ``"B08"``).
            timeout: Seconds the fetch may take, passed to blocking I/O.

        Returns:
            The band raster on the scene's native grid.

        Raises:
            DataSourceError: If the band is missing or the fetch fails.
        """
        ...

    @abstractmethod
    def check_status(self) -> SourceStatus:
        """Check source operational status.

        Never raises; returns a ``SourceStatus`` with ``available=False``
        and a descriptive message on failure.
        """
        ...

    def _missing_band(self, entry: CatalogEntry, band: str) -> DataSourceError:
        available = ", ".join(entry.bands_available) or "none"
        return DataSourceError(
            what=f"Band {band!r} not available for scene {entry.scene_id}",
            cause=f"Available bands: {available}",
            fix="Choose band identifiers this source provides (--nir-band/--red-band)",
        )
