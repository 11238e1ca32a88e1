"""Pipeline configuration for greenarea.

Settings live in an immutable pydantic model. A module-level default can
be changed with ``configure()``; every pipeline run captures the config it
was started with so later ``configure()`` calls never affect it.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from greenarea.exceptions import ConfigurationError

logger = logging.getLogger("greenarea")

Reducer = Literal["median", "mean", "min", "max"]
AreaUnit = Literal["m2", "ha", "km2", "acre"]


class Config(BaseModel):
    """Pipeline configuration model.

    Args:
        nir_band: Band identifier used as the NDVI numerator term.
        red_band: Band identifier used as the NDVI denominator complement.
        max_cloud: Scenes must have cloud cover strictly below this (0.0--1.0).
        ndvi_threshold: Composite pixels strictly above this are masked in.
        reducer: Per-pixel temporal reducer for the composite.
        area_unit: Unit of the reported area.
        concurrency: Maximum number of scenes processed at once.
        fetch_timeout_s: Wall-clock budget per scene, in seconds.
        max_retries: HTTP attempts per request for network sources.
        resample_to_common_grid: Resample every index raster onto the grid
            of the first scene before compositing.

    Example:
        >>> cfg = Config(ndvi_threshold=0.4, area_unit="km2")
        >>> cfg.reducer
        'median'
    """

    model_config = ConfigDict(frozen=True, validate_default=True, extra="forbid")

    nir_band: str = "B08"
    red_band: str = "B04"
    max_cloud: float = 0.2
    ndvi_threshold: float = 0.3
    reducer: Reducer = "median"
    area_unit: AreaUnit = "ha"
    concurrency: int = 4
    fetch_timeout_s: float = 60.0
    max_retries: int = 3
    resample_to_common_grid: bool = False

    @field_validator("nir_band", "red_band")
    @classmethod
    def _validate_band(cls, v: str) -> str:
        """Ensure band identifiers are non-blank."""
        v = v.strip()
        if not v:
            msg = "band identifier must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("max_cloud")
    @classmethod
    def _validate_max_cloud(cls, v: float) -> float:
        """Ensure the cloud fraction lies in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            msg = "max_cloud must be a fraction between 0 and 1"
            raise ValueError(msg)
        return v

    @field_validator("ndvi_threshold")
    @classmethod
    def _validate_threshold(cls, v: float) -> float:
        """Ensure the threshold is finite and inside the NDVI range."""
        if not math.isfinite(v) or not -1.0 <= v <= 1.0:
            msg = "ndvi_threshold must be a finite value between -1 and 1"
            raise ValueError(msg)
        return v

    @field_validator("concurrency", "max_retries")
    @classmethod
    def _validate_positive_int(cls, v: int) -> int:
        if v <= 0:
            msg = "value must be greater than 0"
            raise ValueError(msg)
        return v

    @field_validator("fetch_timeout_s")
    @classmethod
    def _validate_timeout(cls, v: float) -> float:
        if not math.isfinite(v) or v <= 0:
            msg = "fetch_timeout_s must be a positive number of seconds"
            raise ValueError(msg)
        return v


_default_config = Config()


def configure(**kwargs: Any) -> None:
    """Set module-level default configuration.

    Creates a new ``Config`` from the current defaults merged with
    the provided keyword arguments.

    Args:
        **kwargs: Any ``Config`` field (e.g. ``ndvi_threshold``,
            ``concurrency``, ``area_unit``).

    Raises:
        ValidationError: If a provided value fails pydantic validation.

    Example:
        >>> configure(ndvi_threshold=0.5, concurrency=8)
    """
    global _default_config  # noqa: PLW0603
    current = _default_config.model_dump()
    current.update(kwargs)
    _default_config = Config(**current)


def get_default_config() -> Config:
    """Return the current module-level default configuration."""
    return _default_config


def build_config(base: Config | None = None, **overrides: Any) -> Config:
    """Return *base* (or the default) updated with non-``None`` overrides.

    Validation failures are reported as ``ConfigurationError`` so callers
    at the edge (CLI, API) deal with a single error family.

    Args:
        base: Starting configuration. Defaults to ``get_default_config()``.
        **overrides: ``Config`` fields; ``None`` values are ignored.

    Returns:
        A new validated ``Config``.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    current = (base if base is not None else get_default_config()).model_dump()
    current.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Config(**current)
    except ValidationError as exc:
        raise ConfigurationError(
            what="Invalid pipeline configuration",
            cause=_summarize_validation_error(exc),
            fix="Correct the listed settings and run again",
        ) from None


def load_config_file(path: str | Path) -> Config:
    """Load a ``Config`` from a JSON file.

    Args:
        path: Path to a JSON object whose keys are ``Config`` fields.

    Returns:
        Parsed configuration.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not a JSON
            object, or holds invalid settings.
    """
    resolved = Path(path).expanduser()
    try:
        text = resolved.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigurationError(
            what="Cannot read config file",
            cause=f"File not found: {resolved}",
            fix="Check the --config path",
        ) from None
    except PermissionError:
        raise ConfigurationError(
            what="Cannot read config file",
            cause=f"Permission denied: {resolved}",
            fix=f"Check file permissions on {resolved}",
        ) from None

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            what="Invalid config file format",
            cause=f"JSON parse error in {resolved}: {exc}",
            fix='Ensure the file contains a JSON object such as {"ndvi_threshold": 0.3}',
        ) from None

    if not isinstance(parsed, dict):
        raise ConfigurationError(
            what="Invalid config file format",
            cause=f"Expected a JSON object in {resolved}, got {type(parsed).__name__}",
            fix='Ensure the file contains a JSON object such as {"ndvi_threshold": 0.3}',
        )

    logger.debug("Loaded config from %s", resolved)
    return build_config(Config(), **parsed)


def _summarize_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "config"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)
