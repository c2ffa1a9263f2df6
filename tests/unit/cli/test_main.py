"""Unit tests for the intentgate admin CLI.

Commands are invoked through typer's CliRunner; external tools and git are
patched out.
"""

import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from cli import __version__
from cli import console as console_module
from cli.main import app
from tests.helpers import FakeChecker

runner = CliRunner()


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Render rich output wide enough that table cells are not truncated."""
    monkeypatch.setattr(console_module.console, "width", 200)


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"intentgate version {__version__}" in result.stdout


class TestDetectCommand:
    """Tests for intentgate detect."""

    def test_json_output(self, rails_project):
        result = runner.invoke(app, ["detect", "find all files matching *.rb", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["decision"]["target_id"] == "file-finder"
        assert data["stages"] == ["pattern"]
        assert "file-finder" in data["directive"]["systemMessage"]

    def test_no_directive_for_question(self, rails_project):
        result = runner.invoke(app, ["detect", "what is a migration?"])

        assert result.exit_code == 0
        assert "No directive" in result.stdout

    def test_invalid_config_exits_one(self, temp_project):
        bad = temp_project / "bad.yaml"
        bad.write_text("detection: [unclosed\n")

        result = runner.invoke(app, ["detect", "anything", "--config", str(bad)])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout


class TestValidateCommand:
    """Tests for intentgate validate."""

    def test_no_files(self, temp_project):
        with patch("cli.gate_commands.discover_changed_files", return_value=[]):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == 0
        assert "No files to validate" in result.stdout

    def test_failure_exit_code(self, temp_project, write_file):
        write_file("app/models/user.rb")
        checkers = [("typecheck", FakeChecker("typecheck", "unavailable"), ""), ("lint", FakeChecker("lint", "fail"), "")]

        with patch("intentgate.validation.build_checkers", return_value=checkers):
            result = runner.invoke(app, ["validate", "app/models/user.rb"])

        assert result.exit_code == 1
        assert "Validation failed: lint" in result.stdout

    def test_level_option(self, temp_project, write_file):
        write_file("app/models/user.rb")
        checkers = [("lint", FakeChecker("lint", "fail"), "")]

        with patch("intentgate.validation.build_checkers", return_value=checkers):
            result = runner.invoke(app, ["validate", "app/models/user.rb", "--level", "warning"])

        assert result.exit_code == 2

    def test_unknown_level(self, temp_project):
        result = runner.invoke(app, ["validate", "a.rb", "--level", "strict"])
        assert result.exit_code == 1
        assert "Unknown validation level" in result.stdout


class TestGuardianCommand:
    """Tests for intentgate guardian."""

    def test_exhausted_without_repair(self, temp_project, write_file):
        write_file("app/models/user.rb")
        checkers = [("lint", FakeChecker("lint", "fail", "a.rb:1: offense"), "")]

        with patch("intentgate.validation.build_checkers", return_value=checkers):
            result = runner.invoke(app, ["guardian", "app/models/user.rb", "--feature-id", "F-1"])

        assert result.exit_code == 1
        assert "Manual intervention required" in result.stdout
        assert (temp_project / ".intentgate" / "guardian-audit.log").exists()

    def test_passes(self, temp_project, write_file):
        write_file("app/models/user.rb")
        checkers = [("lint", FakeChecker("lint"), "")]

        with patch("intentgate.validation.build_checkers", return_value=checkers):
            result = runner.invoke(app, ["guardian", "app/models/user.rb"])

        assert result.exit_code == 0
        assert "Guardian passed" in result.stdout


class TestInspectionCommands:
    """Tests for intentgate checkers and intentgate config."""

    def test_checkers_table(self, temp_project):
        with patch("intentgate.checkers.shutil.which", return_value=None):
            result = runner.invoke(app, ["checkers"])

        assert result.exit_code == 0
        for name in ("typecheck", "lint", "static_analysis", "security"):
            assert name in result.stdout

    def test_config_json(self, temp_project, monkeypatch):
        monkeypatch.setenv("INTENTGATE_VALIDATION_LEVEL", "advisory")

        result = runner.invoke(app, ["config", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["validation_level"] == "advisory"
        assert data["max_iterations"] == 3

    def test_config_yaml(self, temp_project):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "detection:" in result.stdout
        assert "none (defaults)" in result.stdout
