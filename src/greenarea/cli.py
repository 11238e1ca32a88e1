"""Command-line entry point.

Usage:
    greenarea --region field.geojson --start 2024-06-01 --end 2024-09-01 \\
        --source local --source-root ./scenes --unit ha

Prints the summary line (e.g. ``{"area_ha": 12.5}``) on stdout. Exit codes:
0 success, 2 configuration error, 3 empty result, 4 data-source failure,
5 grid or dimension mismatch, 130 cancelled.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from greenarea.__about__ import __version__
from greenarea._pipeline import run_pipeline
from greenarea._types import CancellationToken
from greenarea.config import build_config, get_default_config, load_config_file
from greenarea.exceptions import (
    ConfigurationError,
    DataSourceError,
    DimensionMismatchError,
    EmptyInputError,
    GreenAreaError,
    GridMismatchError,
    PipelineCancelledError,
)
from greenarea.region import region as create_region
from greenarea.sources import get_source

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_EMPTY = 3
EXIT_DATA_SOURCE = 4
EXIT_GRID = 5
EXIT_CANCELLED = 130

_EXIT_CODES: tuple[tuple[type[GreenAreaError], int], ...] = (
    (ConfigurationError, EXIT_CONFIG),
    (EmptyInputError, EXIT_EMPTY),
    (DataSourceError, EXIT_DATA_SOURCE),
    (GridMismatchError, EXIT_GRID),
    (DimensionMismatchError, EXIT_GRID),
    (PipelineCancelledError, EXIT_CANCELLED),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="greenarea",
        description="Compute the vegetated area of a region from satellite scenes.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  greenarea --region field.geojson --start 2024-06-01 --end 2024-09-01 \\
      --source local --source-root ./scenes
  greenarea --region "POLYGON ((14.9 45.0, 15.1 45.0, 15.1 45.3, 14.9 45.3, 14.9 45.0))" \\
      --start 2024-06-01 --end 2024-09-01 --source stac --unit km2
        """,
    )
    parser.add_argument(
        "--region",
        required=True,
        help="Region of interest as WKT, GeoJSON, or a path to a file holding one",
    )
    parser.add_argument("--start", required=True, help="First day (YYYY-MM-DD)")
    parser.add_argument(
        "--end",
        required=True,
        help="Day after the last day (YYYY-MM-DD, exclusive)",
    )
    parser.add_argument(
        "--source",
        default="stac",
        help="Data source: local or stac (default: stac)",
    )
    parser.add_argument("--source-root", help="Scene directory for --source local")
    parser.add_argument("--stac-url", help="STAC API root URL for --source stac")
    parser.add_argument("--collection", help="STAC collection for --source stac")
    parser.add_argument("--config", help="JSON file with configuration settings")
    parser.add_argument("--max-cloud", type=float, help="Cloud fraction limit (0-1)")
    parser.add_argument("--ndvi-threshold", type=float, help="Index threshold (-1 to 1)")
    parser.add_argument("--unit", choices=["m2", "ha", "km2", "acre"], help="Area unit")
    parser.add_argument(
        "--reducer",
        choices=["median", "mean", "min", "max"],
        help="Temporal reducer for the composite",
    )
    parser.add_argument("--concurrency", type=int, help="Scenes processed at once")
    parser.add_argument("--timeout", type=float, help="Per-scene time limit in seconds")
    parser.add_argument("--nir-band", help="Near-infrared band identifier")
    parser.add_argument("--red-band", help="Red band identifier")
    parser.add_argument(
        "--resample",
        action="store_true",
        default=None,
        help="Resample every scene onto the first scene's grid",
    )
    parser.add_argument("--output-raster", help="Write the composite to this GeoTIFF")
    parser.add_argument("--output-summary", help="Write the JSON summary to this file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _source_options(args: argparse.Namespace) -> dict[str, Any]:
    name = args.source.lower()
    if name == "local":
        if not args.source_root:
            raise ConfigurationError(
                what="Missing scene directory",
                cause="--source local needs --source-root",
                fix="Pass --source-root pointing at a directory of scene folders",
            )
        return {"root": args.source_root}
    if name == "stac":
        options: dict[str, Any] = {}
        if args.stac_url:
            options["url"] = args.stac_url
        if args.collection:
            options["collection"] = args.collection
        return options
    return {}


def _write_outputs(args: argparse.Namespace, result: Any) -> None:
    try:
        if args.output_raster:
            path = result.to_geotiff(Path(args.output_raster))
            logger.info("Composite written to %s", path)
        if args.output_summary:
            path = result.to_json(Path(args.output_summary))
            logger.info("Summary written to %s", path)
    except OSError as exc:
        raise ConfigurationError(
            what="Cannot write output file",
            cause=str(exc),
            fix="Check the output path and its directory permissions",
        ) from exc


def _run(args: argparse.Namespace, token: CancellationToken) -> int:
    base = load_config_file(args.config) if args.config else get_default_config()
    config = build_config(
        base,
        nir_band=args.nir_band,
        red_band=args.red_band,
        max_cloud=args.max_cloud,
        ndvi_threshold=args.ndvi_threshold,
        reducer=args.reducer,
        area_unit=args.unit,
        concurrency=args.concurrency,
        fetch_timeout_s=args.timeout,
        resample_to_common_grid=args.resample,
    )
    roi = create_region(args.region)
    source = get_source(args.source, config, **_source_options(args))

    result = run_pipeline(source, roi, (args.start, args.end), config=config, token=token)
    _write_outputs(args, result)
    for warning in result.warnings:
        logger.warning("%s", warning)
    print(result.summary_line())
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return its exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    token = CancellationToken()
    try:
        return _run(args, token)
    except KeyboardInterrupt:
        token.cancel()
        print("Error: cancelled", file=sys.stderr)
        return EXIT_CANCELLED
    except GreenAreaError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for error_type, code in _EXIT_CODES:
            if isinstance(exc, error_type):
                return code
        return 1


if __name__ == "__main__":
    sys.exit(main())
