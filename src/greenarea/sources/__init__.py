"""Data source registry.

Provides ``get_source()`` to instantiate configured data sources by name.
Supports ``local`` (directory of GeoTIFF scenes), ``stac`` (STAC API over
HTTP) and ``memory`` (preloaded scenes).
"""

from __future__ import annotations

from typing import Any

from greenarea.config import Config
from greenarea.exceptions import ConfigurationError
from greenarea.sources.base import DataSource, SourceStatus
from greenarea.sources.local import LocalDirectorySource
from greenarea.sources.memory import InMemorySource
from greenarea.sources.stac import StacSource

_SOURCE_REGISTRY: dict[str, type[DataSource]] = {
    "local": LocalDirectorySource,
    "memory": InMemorySource,
    "stac": StacSource,
}

__all__ = [
    "DataSource",
    "InMemorySource",
    "LocalDirectorySource",
    "SourceStatus",
    "StacSource",
    "get_registered_names",
    "get_source",
]


def get_registered_names() -> list[str]:
    """Return sorted list of registered source names."""
    return sorted(_SOURCE_REGISTRY)


def get_source(name: str, config: Config, **options: Any) -> DataSource:
    """Return a configured data source instance by name.

    Source names are case-insensitive. ``options`` are passed to the
    source constructor (``root`` for ``local``; ``url``, ``collection``,
    ``sign_url`` for ``stac``; ``scenes`` for ``memory``).

    Args:
        name: Source identifier (``"local"``, ``"stac"`` or ``"memory"``).
        config: Frozen configuration snapshot.
        **options: Source-specific constructor arguments.

    Returns:
        A configured ``DataSource``.

    Raises:
        ConfigurationError: If *name* is unknown or required options are
            missing.

    Example:
        >>> from greenarea.config import Config
        >>> get_source("stac", Config()).name
        'stac'
    """
    key = name.lower()
    if key not in _SOURCE_REGISTRY:
        valid = ", ".join(get_registered_names())
        raise ConfigurationError(
            what=f"Unknown data source: {name!r}",
            cause=f"Valid sources are: {valid}",
            fix=f"Use one of: {valid}",
        )
    try:
        return _SOURCE_REGISTRY[key](config=config, **options)
    except TypeError as exc:
        raise ConfigurationError(
            what=f"Invalid options for data source {key!r}",
            cause=str(exc),
            fix="Check the source-specific options (e.g. --source-root for 'local')",
        ) from None
