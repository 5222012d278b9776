"""Tests for the notify-templates CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from notify_templates._version import __version__
from notify_templates.datasource.orchestrator import LiveDataSnapshot
from notify_templates_cli.app import app

runner = CliRunner()

FIXTURES = Path(__file__).resolve().parent.parent / "fixtures"
TEMPLATE = FIXTURES / "templates" / "incident_summary.yaml"
RECORDS = FIXTURES / "records" / "incidents.json"


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestAppRegistration:
    """Verify that all expected subcommands are registered on the Typer app."""

    def test_validate_command_registered(self) -> None:
        result = runner.invoke(app, ["validate", "--help"])
        assert result.exit_code == 0
        assert "max-statistics" in result.output

    def test_render_command_registered(self) -> None:
        result = runner.invoke(app, ["render", "--help"])
        assert result.exit_code == 0
        assert "--data" in result.output
        assert "--endpoint" in result.output

    def test_check_command_registered(self) -> None:
        result = runner.invoke(app, ["check", "--help"])
        assert result.exit_code == 0
        assert "check" in result.output.lower()


class TestHelp:
    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("validate", "render", "check"):
            assert name in result.output

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "notify-templates" in result.output
        assert __version__ in result.output


class TestValidate:
    def test_valid_template(self) -> None:
        result = runner.invoke(app, ["validate", str(TEMPLATE)])
        assert result.exit_code == 0
        assert "Template OK" in result.output

    def test_invalid_template(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "statistics": [{"id": "1bad", "field": "amount", "operation": "sum", "label": "Bad"}],
                    "visualElements": [{"id": "t", "type": "text"}],
                }
            )
        )
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Invalid Template" in result.output

    def test_statistic_limit_override(self) -> None:
        result = runner.invoke(app, ["validate", str(TEMPLATE), "--max-statistics", "2"])
        assert result.exit_code == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Cannot Load Template" in result.output


class TestRender:
    def test_sample_to_stdout(self) -> None:
        result = runner.invoke(app, ["render", str(TEMPLATE), "--name", "Road Closures"])
        assert result.exit_code == 0
        assert "Sample Organization" in result.output
        assert "Road Closures" in result.output
        assert "$1,234,567.00" in result.output

    def test_sample_to_file(self, tmp_path: Path) -> None:
        out = tmp_path / "out" / "email.html"
        result = runner.invoke(app, ["render", str(TEMPLATE), "--output", str(out)])
        assert result.exit_code == 0
        assert "Rendered" in result.output
        html = out.read_text(encoding="utf-8")
        assert html.startswith("<div")
        assert "{{" not in html

    def test_with_record_export(self, tmp_path: Path) -> None:
        out = tmp_path / "email.html"
        result = runner.invoke(app, ["render", str(TEMPLATE), "--data", str(RECORDS), "-o", str(out)])
        assert result.exit_code == 0
        html = out.read_text(encoding="utf-8")
        assert "$1,400.50" in html
        assert "Object ID" in html

    def test_data_and_endpoint_conflict(self) -> None:
        result = runner.invoke(app, ["render", str(TEMPLATE), "--data", str(RECORDS), "--endpoint", "https://x"])
        assert result.exit_code == 1
        assert "Conflicting Options" in result.output

    def test_endpoint_errors_are_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen = {}

        async def fake_fetch(source, template):
            seen["endpoint"] = source.endpoint
            return LiveDataSnapshot(endpoint=source.endpoint, errors={"metadata": "Service not found"})

        monkeypatch.setattr("notify_templates_cli.commands.render.fetch_snapshot", fake_fetch)
        result = runner.invoke(app, ["render", str(TEMPLATE), "--endpoint", "https://gis.example.com/layer/0"])

        assert result.exit_code == 0
        assert seen["endpoint"] == "https://gis.example.com/layer/0"
        assert "Service not found" in result.output
        assert "Sample Organization" in result.output

    def test_bad_template(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("visualElements: [")
        result = runner.invoke(app, ["render", str(path)])
        assert result.exit_code == 1
        assert "Cannot Render" in result.output


class TestCheck:
    def test_check_runs_successfully(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "weekly.yaml").write_text("html: x\n")
        result = runner.invoke(app, ["check"])
        assert result.exit_code == 0
        assert "Environment Check" in result.output
        assert "weekly.yaml" in result.output
        assert "checks passed" in result.output
