"""Tests for the fiberio CLI."""

import io
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from fiberio import __version__, cli
from fiberio.cli import app

runner = CliRunner()


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"fiberio v{__version__}" in result.output


class TestValidateCommand:
    """Tests for `fiberio validate`."""

    def test_valid_config(self, tmp_path: Path):
        config = tmp_path / "fiberio.yaml"
        config.write_text("clock: virtual\nmax_steps: 1000\nfetch:\n  timeout: 5\n")

        result = runner.invoke(app, ["validate", str(config)])

        assert result.exit_code == 0
        assert "Valid configuration" in result.output
        assert "Clock: virtual" in result.output
        assert "Max steps: 1000" in result.output

    def test_defaults_report_unbounded(self, tmp_path: Path):
        config = tmp_path / "empty.yaml"
        config.write_text("")

        result = runner.invoke(app, ["validate", str(config)])

        assert result.exit_code == 0
        assert "Max steps: unbounded" in result.output

    def test_invalid_config(self, tmp_path: Path):
        config = tmp_path / "bad.yaml"
        config.write_text("clock: sundial\n")

        result = runner.invoke(app, ["validate", str(config)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_errors_go_to_stderr_console(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        captured = Console(file=io.StringIO(), width=200)
        monkeypatch.setattr(cli, "err_console", captured)
        config = tmp_path / "bad.yaml"
        config.write_text("clock: sundial\n")

        result = runner.invoke(app, ["validate", str(config)])

        assert result.exit_code == 1
        assert "Invalid configuration" in captured.file.getvalue()

    def test_missing_file_rejected(self, tmp_path: Path):
        result = runner.invoke(app, ["validate", str(tmp_path / "absent.yaml")])
        assert result.exit_code != 0


class TestRunCommand:
    """Tests for `fiberio run`."""

    def test_runs_entry_point(self, script_file: Path):
        result = runner.invoke(
            app, ["run", str(script_file), "--virtual-clock", "--show-result"],
        )

        assert result.exit_code == 0, result.output
        assert "start" in result.output
        assert "child returned 3" in result.output
        assert result.output.rstrip().endswith("5")

    def test_result_hidden_by_default(self, script_file: Path):
        result = runner.invoke(app, ["run", str(script_file), "--virtual-clock"])

        assert result.exit_code == 0
        assert result.output.splitlines() == ["start", "child returned 3"]

    def test_config_file_selects_virtual_clock(self, script_file: Path, tmp_path: Path):
        config = tmp_path / "fiberio.yaml"
        config.write_text("clock: virtual\n")

        result = runner.invoke(
            app, ["run", str(script_file), "--config", str(config), "--show-result"],
        )

        assert result.exit_code == 0
        assert "5" in result.output

    def test_failing_root_exits_nonzero(self, script_file: Path):
        result = runner.invoke(
            app, ["run", str(script_file), "--entry", "broken", "--virtual-clock"],
        )

        assert result.exit_code == 1
        assert "Root fiber failed" in result.output
        assert "script exploded" in result.output

    def test_step_limit_aborts(self, script_file: Path):
        result = runner.invoke(
            app,
            ["run", str(script_file), "--entry", "forever",
             "--virtual-clock", "--max-steps", "5"],
        )

        assert result.exit_code == 1
        assert "Run aborted" in result.output

    @pytest.mark.parametrize("entry", ["missing", "NOT_CALLABLE"])
    def test_bad_entry_point(self, script_file: Path, entry: str):
        result = runner.invoke(app, ["run", str(script_file), "--entry", entry])

        assert result.exit_code == 1
        assert "Cannot load script" in result.output

    def test_invalid_config_file(self, script_file: Path, tmp_path: Path):
        config = tmp_path / "bad.yaml"
        config.write_text("max_steps: 0\n")

        result = runner.invoke(app, ["run", str(script_file), "--config", str(config)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_log_format_both_without_file(self, script_file: Path):
        result = runner.invoke(
            app, ["run", str(script_file), "--virtual-clock", "--log-format", "both"],
        )

        assert result.exit_code == 1
        assert "Logging configuration error" in result.output

    def test_json_log_file(self, script_file: Path, tmp_path: Path):
        log_file = tmp_path / "run.log"

        result = runner.invoke(
            app,
            ["run", str(script_file), "--virtual-clock",
             "--log-level", "info", "--log-format", "json", "--log-file", str(log_file)],
        )

        assert result.exit_code == 0
        text = log_file.read_text()
        assert '"event": "run_starting"' in text
        assert '"event": "run_finished"' in text
