"""greenarea exception hierarchy.

All exceptions follow a three-part message pattern: what failed,
likely cause, and suggested fix.
"""

from __future__ import annotations


class GreenAreaError(Exception):
    """Base exception for all greenarea errors.

    Args:
        what: Description of what failed.
        cause: Likely cause of the failure.
        fix: Suggested action to resolve the issue.

    Example:
        >>> raise GreenAreaError(
        ...     what="Operation failed",
        ...     cause="Unexpected internal state",
        ...     fix="Please report this issue",
        ... )
    """

    def __init__(
        self,
        what: str,
        cause: str = "",
        fix: str = "",
    ) -> None:
        self.what = what
        self.cause = cause
        self.fix = fix
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Build the multi-line error message from parts.

        Returns:
            Formatted message with optional Cause and Fix lines.
        """
        parts = [self.what]
        if self.cause:
            parts.append(f"Cause: {self.cause}")
        if self.fix:
            parts.append(f"Fix: {self.fix}")
        return "\n".join(parts)


class ConfigurationError(GreenAreaError):
    """Raised for invalid region, date range, threshold or config file input.

    Always raised before any computation starts.

    Example:
        >>> raise ConfigurationError(
        ...     what="Invalid date range",
        ...     cause="start 2024-09-01 is not before end 2024-06-01",
        ...     fix="Swap --start and --end",
        ... )
    """


class DataSourceError(GreenAreaError):
    """Raised for catalog or band fetch failures after retries exhausted.

    Example:
        >>> raise DataSourceError(
        ...     what="STAC download failed",
        ...     cause="HTTP 503 after 3 retries",
        ...     fix="Check the catalog service status and try again",
        ... )
    """


class EmptyInputError(GreenAreaError):
    """Raised when no scenes matched or nothing is left to composite."""


class GridMismatchError(GreenAreaError):
    """Raised when rasters that must share a grid do not."""


class DimensionMismatchError(GreenAreaError):
    """Raised when array shapes that must agree differ."""


class PipelineCancelledError(GreenAreaError):
    """Raised when a pipeline run is cancelled through its token."""
