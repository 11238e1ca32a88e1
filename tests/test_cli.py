"""Tests for the command-line entry point."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pytest

from greenarea._types import CatalogEntry, GridSpec, Raster
from greenarea.cli import (
    EXIT_CANCELLED,
    EXIT_CONFIG,
    EXIT_DATA_SOURCE,
    EXIT_EMPTY,
    EXIT_GRID,
    EXIT_OK,
    build_parser,
    main,
)
from greenarea.exceptions import DataSourceError, PipelineCancelledError
from greenarea.sources.memory import InMemorySource
from conftest import NIR_BANDS, REGION_WKT, RED_BANDS, make_scene


def _argv(root: Path, *extra: str, start: str = "2024-06-01", end: str = "2024-09-01") -> list[str]:
    return [
        "--region",
        REGION_WKT,
        "--start",
        start,
        "--end",
        end,
        "--source",
        "local",
        "--source-root",
        str(root),
        *extra,
    ]


class _BrokenSource(InMemorySource):
    def fetch_band(self, entry: CatalogEntry, band: str, timeout: float | None = None) -> Raster:
        raise DataSourceError(what="Download failed", cause="HTTP 503")


@pytest.mark.unit
class TestParser:
    def test_defaults(self) -> None:
        args = build_parser().parse_args(
            ["--region", REGION_WKT, "--start", "2024-06-01", "--end", "2024-09-01"]
        )
        assert args.source == "stac"
        assert args.unit is None
        assert args.resample is None
        assert not args.verbose

    def test_missing_required(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--start", "2024-06-01"])
        assert exc_info.value.code == 2

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert "greenarea" in capsys.readouterr().out


@pytest.mark.unit
class TestMainSuccess:
    def test_prints_summary_line(
        self, local_scene_root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = main(_argv(local_scene_root, "--unit", "m2"))

        out = capsys.readouterr().out
        assert code == EXIT_OK
        assert out.strip() == '{"area_m2": 300.0}'

    def test_default_unit_is_hectares(
        self, local_scene_root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(_argv(local_scene_root)) == EXIT_OK
        assert json.loads(capsys.readouterr().out) == {"area_ha": pytest.approx(0.03)}

    def test_writes_outputs(
        self, local_scene_root: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        raster_path = tmp_path / "composite.tif"
        summary_path = tmp_path / "summary.json"

        code = main(
            _argv(
                local_scene_root,
                "--output-raster",
                str(raster_path),
                "--output-summary",
                str(summary_path),
            )
        )

        assert code == EXIT_OK
        assert raster_path.stat().st_size > 0
        summary = json.loads(summary_path.read_text(encoding="utf-8"))
        assert summary["area_ha"] == pytest.approx(0.03)
        assert summary["metadata"]["scene_ids"] == ["S1", "S2", "S3"]

    def test_config_file(
        self, local_scene_root: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"area_unit": "km2", "ndvi_threshold": 0.61}))

        assert main(_argv(local_scene_root, "--config", str(config_path))) == EXIT_OK
        assert json.loads(capsys.readouterr().out) == {"area_km2": pytest.approx(0.0001)}

    def test_flags_override_config_file(
        self, local_scene_root: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"area_unit": "km2"}))

        main(_argv(local_scene_root, "--config", str(config_path), "--unit", "m2"))

        assert "area_m2" in capsys.readouterr().out


@pytest.mark.unit
class TestMainErrors:
    def test_no_scenes_exit_code(
        self, local_scene_root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        code = main(_argv(local_scene_root, start="2023-01-01", end="2023-02-01"))

        captured = capsys.readouterr()
        assert code == EXIT_EMPTY
        assert captured.out == ""
        assert captured.err.startswith("Error: No scenes matched")
        assert "Traceback" not in captured.err

    def test_bad_date(self, local_scene_root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(_argv(local_scene_root, start="June 1st")) == EXIT_CONFIG
        assert "Error:" in capsys.readouterr().err

    def test_reversed_dates(self, local_scene_root: Path) -> None:
        assert main(_argv(local_scene_root, start="2024-09-01", end="2024-06-01")) == EXIT_CONFIG

    def test_invalid_region(self, local_scene_root: Path) -> None:
        argv = _argv(local_scene_root)
        argv[1] = "POLYGON ((0 0, 1 1))"
        assert main(argv) == EXIT_CONFIG

    def test_out_of_range_setting(self, local_scene_root: Path) -> None:
        assert main(_argv(local_scene_root, "--max-cloud", "1.5")) == EXIT_CONFIG

    def test_local_source_needs_root(self, capsys: pytest.CaptureFixture[str]) -> None:
        code = main(
            [
                "--region", REGION_WKT,
                "--start", "2024-06-01",
                "--end", "2024-09-01",
                "--source", "local",
            ]
        )
        assert code == EXIT_CONFIG
        assert "--source-root" in capsys.readouterr().err

    def test_unknown_source(self) -> None:
        argv = [
            "--region", REGION_WKT,
            "--start", "2024-06-01",
            "--end", "2024-09-01",
            "--source", "sentinel-hub",
        ]
        assert main(argv) == EXIT_CONFIG

    def test_missing_config_file(self, local_scene_root: Path, tmp_path: Path) -> None:
        code = main(_argv(local_scene_root, "--config", str(tmp_path / "missing.json")))
        assert code == EXIT_CONFIG

    def test_data_source_failure(self, three_scenes: list, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("greenarea.cli.get_source", return_value=_BrokenSource(three_scenes)):
            code = main(_argv(Path("unused")))

        assert code == EXIT_DATA_SOURCE
        assert "failed to load" in capsys.readouterr().err

    def test_grid_mismatch(self) -> None:
        wide = GridSpec.from_origin(500000.0, 5000020.0, 10.0, 10.0, 4, 4, crs="EPSG:32633")
        scenes = [
            make_scene("S1", date(2024, 6, 5), NIR_BANDS[0], RED_BANDS[0]),
            make_scene(
                "S2",
                date(2024, 7, 10),
                np.full((4, 4), 0.5).tolist(),
                np.full((4, 4), 0.1).tolist(),
                grid=wide,
            ),
        ]
        with patch("greenarea.cli.get_source", return_value=InMemorySource(scenes)):
            assert main(_argv(Path("unused"))) == EXIT_GRID

    def test_resample_flag_resolves_grid_mismatch(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        wide = GridSpec.from_origin(500000.0, 5000020.0, 10.0, 10.0, 4, 4, crs="EPSG:32633")
        scenes = [
            make_scene("S1", date(2024, 6, 5), NIR_BANDS[0], RED_BANDS[0]),
            make_scene(
                "S2",
                date(2024, 7, 10),
                np.full((4, 4), 0.5).tolist(),
                np.full((4, 4), 0.1).tolist(),
                grid=wide,
            ),
        ]
        with patch("greenarea.cli.get_source", return_value=InMemorySource(scenes)):
            assert main(_argv(Path("unused"), "--resample")) == EXIT_OK

    def test_keyboard_interrupt(
        self, local_scene_root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with patch("greenarea.cli.run_pipeline", side_effect=KeyboardInterrupt):
            code = main(_argv(local_scene_root))

        assert code == EXIT_CANCELLED
        assert "cancelled" in capsys.readouterr().err

    def test_pipeline_cancelled(self, local_scene_root: Path) -> None:
        error = PipelineCancelledError(what="Pipeline cancelled")
        with patch("greenarea.cli.run_pipeline", side_effect=error):
            assert main(_argv(local_scene_root)) == EXIT_CANCELLED
