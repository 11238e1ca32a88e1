"""Scene access through a STAC API (defaults to Microsoft Planetary Computer)."""

from __future__ import annotations

import logging
import random
import time
from typing import TYPE_CHECKING, Any

import requests
from shapely.errors import GEOSException
from shapely.geometry import shape

from greenarea._types import CatalogEntry
from greenarea.config import Config
from greenarea.exceptions import DataSourceError
from greenarea.sources.base import DataSource, DateRange, SourceStatus, parse_acquired

if TYPE_CHECKING:
    from greenarea._types import Raster
    from greenarea.region import Region

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# STAC API defaults
# ---------------------------------------------------------------------------

_DEFAULT_STAC_URL = "https://planetarycomputer.microsoft.com/api/stac/v1"
_DEFAULT_COLLECTION = "sentinel-2-l2a"
_PC_SIGN_URL = "https://planetarycomputer.microsoft.com/api/sas/v1/sign"

# ---------------------------------------------------------------------------
# Timeout and retry constants
# ---------------------------------------------------------------------------

_DEFAULT_TIMEOUT = 30  # seconds for connection/request timeout
_STATUS_TIMEOUT = 10  # shorter timeout for status checks
_READ_TIMEOUT = 300  # read timeout for large COG downloads

_INITIAL_BACKOFF = 1.0  # seconds
_MAX_BACKOFF = 60.0  # seconds
_RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 408})
_SUCCESS_STATUS_CODES = frozenset({200})

_DEFAULT_PAGE_LIMIT = 100
_MAX_PAGES = 50

# Sentinel-2 L2A band identifiers to Planetary Computer asset keys
_S2_ASSET_MAP: dict[str, str] = {
    "B02": "B02",
    "B03": "B03",
    "B04": "B04",
    "B08": "B08",
    "B8A": "B8A",
    "B11": "B11",
    "B12": "B12",
    "SCL": "SCL",
}


class StacSource(DataSource):
    """Data source backed by a STAC API search endpoint.

    Searches by region bounding box, datetime window, and
    ``eo:cloud_cover``; downloads band assets as Cloud-Optimized GeoTIFFs
    and reads them with rasterio. Asset URLs are signed through the
    Planetary Computer SAS endpoint when ``sign_url`` is set.

    Args:
        config: Frozen configuration snapshot.
        url: STAC API root URL.
        collection: Collection identifier to search.
        asset_map: Band identifier to STAC asset key.
        sign_url: Optional signing endpoint; ``None`` disables signing.

    Example:
        >>> source = StacSource(Config())
        >>> source.name
        'stac'
    """

    _name: str = "stac"

    def __init__(
        self,
        config: Config,
        url: str = _DEFAULT_STAC_URL,
        collection: str = _DEFAULT_COLLECTION,
        asset_map: dict[str, str] | None = None,
        sign_url: str | None = _PC_SIGN_URL,
    ) -> None:
        super().__init__(config)
        self._url = url.rstrip("/")
        self._collection = collection
        self._asset_map = dict(asset_map) if asset_map is not None else dict(_S2_ASSET_MAP)
        self._sign_url = sign_url
        self._session: requests.Session = requests.Session()

    @property
    def search_url(self) -> str:
        return f"{self._url}/search"

    def search(
        self,
        region: Region,
        time_range: DateRange,
        **params: Any,
    ) -> list[CatalogEntry]:
        """Search the STAC collection for scenes over *region*.

        Args:
            region: Region of interest (its bounding box is sent).
            time_range: Half-open date window ``[start, end)``.
            **params: Optional parameters:
                - ``max_cloud`` (float): Maximum cloud cover (0.0--1.0).
                - ``limit`` (int): Page size. Defaults to 100.

        Returns:
            List of matching catalog entries, empty if none found.

        Raises:
            DataSourceError: If the API is unreachable or returns an error
                after retries.
        """
        max_cloud = float(params.get("max_cloud", 1.0))
        limit = int(params.get("limit", _DEFAULT_PAGE_LIMIT))
        start, end = time_range

        # STAC intervals are closed; query_catalog re-applies the open end.
        datetime_range = f"{start.isoformat()}T00:00:00Z/{end.isoformat()}T00:00:00Z"
        body: dict[str, Any] = {
            "collections": [self._collection],
            "bbox": list(region.bounds),
            "datetime": datetime_range,
            "limit": limit,
            "query": {"eo:cloud_cover": {"lt": max_cloud * 100}},
        }

        logger.debug(
            "Searching STAC %s: bbox=%s, datetime=%s, cloud_max=%.0f%%",
            self._collection,
            body["bbox"],
            datetime_range,
            max_cloud * 100,
        )

        entries: list[CatalogEntry] = []
        read_timeout = self._config.fetch_timeout_s
        timeout = (min(_DEFAULT_TIMEOUT, read_timeout), read_timeout)
        next_body: dict[str, Any] | None = body
        pages = 0
        while next_body is not None and pages < _MAX_PAGES:
            pages += 1
            resp = self._retry_request("post", self.search_url, json=next_body, timeout=timeout)
            try:
                page = resp.json()
            except ValueError as exc:
                raise DataSourceError(
                    what="STAC catalog returned invalid JSON",
                    cause=str(exc),
                    fix="Try again; check the catalog service status if persistent",
                ) from exc

            for feature in page.get("features", []):
                try:
                    entry = self._parse_stac_item(feature)
                except (DataSourceError, GEOSException, ValueError, TypeError) as exc:
                    logger.warning("Skipping STAC item %s: %s", feature.get("id"), exc)
                    continue
                if entry is not None:
                    entries.append(entry)
            next_body = self._next_page_body(page, body)

        if next_body is not None:
            logger.warning(
                "Stopped STAC search after %d pages; later results were not fetched",
                _MAX_PAGES,
            )

        logger.debug("Found %d STAC scenes matching criteria", len(entries))
        return entries

    @staticmethod
    def _next_page_body(
        page: dict[str, Any],
        body: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Return the request body for the next page, if the API links one."""
        for link in page.get("links", []):
            if link.get("rel") != "next":
                continue
            next_body = link.get("body")
            if isinstance(next_body, dict):
                merged = dict(body)
                merged.update(next_body)
                return merged
        return None

    def _parse_stac_item(self, item: dict[str, Any]) -> CatalogEntry | None:
        """Parse a STAC item into a ``CatalogEntry``.

        Returns:
            The entry, or ``None`` if the item lacks a date or geometry.

        Raises:
            DataSourceError: If the acquisition date cannot be parsed.
            TypeError: If a property has the wrong type (e.g. null cloud cover).
        """
        properties = item.get("properties", {})
        geometry = item.get("geometry")
        timestamp = properties.get("datetime")
        if not geometry or not timestamp:
            logger.warning("Skipping STAC item %s without geometry/datetime", item.get("id"))
            return None

        assets = item.get("assets", {})
        hrefs: dict[str, str] = {}
        for band, asset_key in self._asset_map.items():
            href = (assets.get(asset_key) or {}).get("href")
            if href:
                hrefs[band] = href

        return CatalogEntry(
            scene_id=str(item.get("id", "")),
            acquired=parse_acquired(timestamp),
            footprint=shape(geometry),
            cloud_cover=float(properties.get("eo:cloud_cover", 0.0)) / 100.0,
            bands_available=tuple(hrefs),
            assets=hrefs,
            metadata={
                "collection": self._collection,
                "platform": str(properties.get("platform", "")),
                "datetime": str(timestamp),
            },
        )

    def fetch_band(
        self,
        entry: CatalogEntry,
        band: str,
        timeout: float | None = None,
    ) -> Raster:
        """Download one band asset and read it with rasterio.

        Raises:
            DataSourceError: If the asset is missing, signing fails, the
                download fails after retries, or the file is unreadable.
        """
        from rasterio.io import MemoryFile  # noqa: PLC0415

        from greenarea._geotiff import raster_from_dataset  # noqa: PLC0415

        href = entry.assets.get(band)
        if not href:
            raise self._missing_band(entry, band)

        href = self._sign_href(href)
        read_timeout = timeout if timeout is not None else _READ_TIMEOUT
        resp = self._retry_request(
            "get",
            href,
            timeout=(min(_DEFAULT_TIMEOUT, read_timeout), read_timeout),
        )

        try:
            with MemoryFile(resp.content) as memfile, memfile.open() as dataset:
                raster = raster_from_dataset(dataset)
        except Exception as exc:  # noqa: BLE001
            raise DataSourceError(
                what=f"Cannot read band {band} of scene {entry.scene_id}",
                cause=f"{type(exc).__name__}: {exc}",
                fix="The asset may be corrupt or not a GeoTIFF; try again later",
            ) from exc

        logger.debug(
            "Fetched %s/%s: shape %s, %s",
            entry.scene_id,
            band,
            raster.shape,
            raster.grid.crs,
        )
        return raster

    def _sign_href(self, href: str) -> str:
        """Return a signed asset URL, or *href* unchanged if signing is off."""
        if self._sign_url is None:
            return href
        resp = self._retry_request("get", self._sign_url, params={"href": href})
        try:
            signed = resp.json().get("href")
        except ValueError as exc:
            raise DataSourceError(
                what="Asset URL signing failed",
                cause=f"Invalid JSON from signing endpoint: {exc}",
                fix="Try again; check the signing service status",
            ) from exc
        if not signed:
            raise DataSourceError(
                what="Asset URL signing failed",
                cause="Signing endpoint returned no href",
                fix="Try again; check the signing service status",
            )
        return str(signed)

    def _retry_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> requests.Response:
        """Execute HTTP request with retry and exponential backoff.

        Args:
            method: HTTP method (``"get"``, ``"post"``, etc.).
            url: Target URL.
            **kwargs: Additional keyword arguments for ``requests.Session.request``.

        Returns:
            Successful HTTP response.

        Raises:
            DataSourceError: If all retries are exhausted or the server
                answers with a non-retryable status.
        """
        kwargs.setdefault("timeout", (_DEFAULT_TIMEOUT, _READ_TIMEOUT))
        kwargs.setdefault("allow_redirects", True)
        max_retries = self._config.max_retries
        last_status: int = 0
        last_exc: requests.RequestException | None = None

        for attempt in range(max_retries):
            try:
                resp = self._session.request(method, url, **kwargs)
            except requests.RequestException as exc:
                last_exc = exc
                if attempt < max_retries - 1:
                    backoff = self._compute_backoff(attempt)
                    logger.warning(
                        "STAC request failed (%s, attempt %d/%d), retrying in %.1fs...",
                        type(exc).__name__,
                        attempt + 1,
                        max_retries,
                        backoff,
                    )
                    time.sleep(backoff)
                continue

            if resp.status_code in _SUCCESS_STATUS_CODES:
                return resp

            last_status = resp.status_code
            last_exc = None
            if resp.status_code not in _RETRYABLE_STATUS_CODES:
                raise DataSourceError(
                    what="STAC request failed",
                    cause=f"HTTP {resp.status_code} from {url}",
                    fix="Check the catalog URL, collection, and service status",
                )

            if attempt < max_retries - 1:
                backoff = self._compute_backoff(attempt)
                logger.warning(
                    "STAC request failed (HTTP %d, attempt %d/%d), retrying in %.1fs...",
                    resp.status_code,
                    attempt + 1,
                    max_retries,
                    backoff,
                )
                time.sleep(backoff)

        if last_exc is not None:
            raise DataSourceError(
                what="STAC request failed after retries",
                cause=str(last_exc),
                fix="Check internet connection and try again",
            ) from last_exc

        raise DataSourceError(
            what="STAC request failed after retries",
            cause=f"HTTP {last_status} after {max_retries} attempts",
            fix="Check the catalog service status and try again later",
        )

    @staticmethod
    def _compute_backoff(attempt: int) -> float:
        """Compute exponential backoff with jitter.

        Args:
            attempt: Zero-based attempt index.

        Returns:
            Wait time in seconds (randomized).
        """
        base_delay: float = min(_INITIAL_BACKOFF * (2**attempt), _MAX_BACKOFF)
        jitter: float = random.uniform(0, base_delay * 0.1)  # noqa: S311
        return float(base_delay + jitter)

    def check_status(self) -> SourceStatus:
        """Check STAC collection availability. Never raises."""
        try:
            resp = self._session.get(
                f"{self._url}/collections/{self._collection}",
                timeout=_STATUS_TIMEOUT,
            )
            if resp.status_code in _SUCCESS_STATUS_CODES:
                return SourceStatus(available=True)
            return SourceStatus(
                available=False,
                message=f"STAC API returned HTTP {resp.status_code}",
            )
        except requests.RequestException as exc:
            return SourceStatus(
                available=False,
                message=f"STAC API unreachable: {exc}",
            )
