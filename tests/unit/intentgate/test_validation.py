"""Unit tests for the validation pipeline and quality-gate exit codes."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from intentgate.checkers import CommandChecker
from intentgate.models import CheckerStatus
from intentgate.validation import (
    applicable_files,
    build_checkers,
    discover_changed_files,
    gate_exit_code,
    validate,
)
from tests.helpers import FakeChecker, make_run


class TestValidate:
    """Tests for validate."""

    def test_unavailable_and_failing_checker_blocks(self, config):
        """typechecker unavailable + linter fail at blocking: fail, exit 1."""
        checkers = [FakeChecker("typecheck", "unavailable"), FakeChecker("lint", "fail")]

        run = validate(["app/models/user.rb"], config, checkers=checkers)

        assert run.checker_results["typecheck"].status == CheckerStatus.SKIPPED
        assert run.checker_results["lint"].status == CheckerStatus.FAIL
        assert run.overall_status == CheckerStatus.FAIL
        assert gate_exit_code(run, "blocking") == 1

    def test_skipped_never_fails_a_run(self, config):
        checkers = [FakeChecker("typecheck", "unavailable"), FakeChecker("lint", "nothing")]
        run = validate(["a.rb"], config, checkers=checkers)
        assert run.passed
        assert run.ran_checkers == []

    def test_checkers_run_in_order(self, config):
        order = []
        checkers = [FakeChecker(name) for name in ("typecheck", "lint", "security")]

        validate(["a.rb"], config, checkers=checkers, on_result=lambda name, _: order.append(name))

        assert order == ["typecheck", "lint", "security"]
        assert list(validate(["a.rb"], config, checkers=checkers).checker_results) == order

    def test_failure_does_not_stop_later_checkers(self, config):
        later = FakeChecker("security")
        validate(["a.rb"], config, checkers=[FakeChecker("lint", "fail"), later])
        assert len(later.calls) == 1

    def test_unrunnable_tool_is_skipped(self, config):
        """A tool that exists but cannot be executed does not abort the run."""
        broken = CommandChecker("typecheck", ["bin/srb", "tc", "{files}"])
        later = FakeChecker("lint")

        with patch("intentgate.checkers.shutil.which", return_value="/app/bin/srb"):
            with patch("intentgate.checkers.run_command", side_effect=PermissionError(13, "Permission denied")):
                run = validate(["a.rb"], config, checkers=[broken, later])

        assert run.checker_results["typecheck"].status == CheckerStatus.SKIPPED
        assert len(later.calls) == 1
        assert run.passed

    def test_validation_level_passed_to_checkers(self, make_config):
        checker = FakeChecker("lint")
        validate(["a.rb"], make_config(validation_level="advisory"), checkers=[checker])
        assert checker.calls == [(["a.rb"], "advisory")]

    def test_iteration_recorded(self, config):
        run = validate(["a.rb"], config, checkers=[FakeChecker("lint")], iteration=3)
        assert run.iteration == 3

    def test_builds_checkers_from_config(self, make_config):
        """Without explicit checkers, config.checkers are used."""
        config = make_config(checkers=({"name": "lint", "command": ["rubocop", "{files}"]},))
        with patch("intentgate.checkers.shutil.which", return_value=None):
            run = validate(["a.rb"], config)
        assert run.checker_results["lint"].status == CheckerStatus.SKIPPED
        assert run.checker_results["lint"].diagnostics == "not installed"


class TestBuildCheckers:
    """Tests for build_checkers."""

    def test_disabled_checkers_dropped(self, make_config):
        config = make_config(
            checkers=(
                {"name": "lint", "command": ["rubocop"]},
                {"name": "security", "kind": "json_findings", "command": ["brakeman"], "enabled": False},
            )
        )
        assert [name for name, _, _ in build_checkers(config)] == ["lint"]

    def test_invalid_definition_becomes_skipped(self, make_config):
        config = make_config(checkers=({"name": "weird", "kind": "telepathy", "command": ["x"]},))

        run = validate(["a.rb"], config)

        assert run.checker_results["weird"].status == CheckerStatus.SKIPPED
        assert "invalid checker definition" in run.checker_results["weird"].diagnostics


class TestGateExitCode:
    """Tests for quality-gate exit codes."""

    @pytest.mark.parametrize("level,expected", [("blocking", 1), ("warning", 2), ("advisory", 0)])
    def test_failed_run(self, level, expected):
        assert gate_exit_code(make_run(["a.rb"], lint="fail"), level) == expected

    @pytest.mark.parametrize("level", ["blocking", "warning", "advisory"])
    def test_passed_run(self, level):
        assert gate_exit_code(make_run(["a.rb"], lint="pass", typecheck="skipped"), level) == 0


class TestApplicableFiles:
    """Tests for applicable_files."""

    def test_filters_extension_and_missing(self, temp_project: Path, write_file):
        write_file("app/models/user.rb", "class User; end\n")
        write_file("README.md", "# readme\n")

        files = applicable_files(
            ["app/models/user.rb", "README.md", "app/models/gone.rb"], [".rb"], temp_project
        )

        assert files == ["app/models/user.rb"]

    def test_deduplicates(self, temp_project: Path, write_file):
        write_file("a.rb")
        assert applicable_files(["a.rb", "a.rb"], [".rb"], temp_project) == ["a.rb"]


class TestDiscoverChangedFiles:
    """Tests for git-based file discovery."""

    def _git(self, stdout: str, returncode: int = 0) -> MagicMock:
        completed = MagicMock()
        completed.stdout = stdout
        completed.returncode = returncode
        return completed

    def test_staged_files_first(self, temp_project, write_file, make_config):
        write_file("app/models/user.rb")
        with patch(
            "intentgate.validation.subprocess.run",
            return_value=self._git("app/models/user.rb\nREADME.md\n"),
        ) as mock_run:
            files = discover_changed_files(make_config(project_root=temp_project))

        assert files == ["app/models/user.rb"]
        assert mock_run.call_args_list[0].args[0] == ["git", "diff", "--name-only", "--cached"]
        assert mock_run.call_count == 1

    def test_falls_back_to_unstaged(self, temp_project, write_file, make_config):
        write_file("app/services/billing.rb")
        with patch(
            "intentgate.validation.subprocess.run",
            side_effect=[self._git(""), self._git("app/services/billing.rb\n")],
        ) as mock_run:
            files = discover_changed_files(make_config(project_root=temp_project))

        assert files == ["app/services/billing.rb"]
        assert mock_run.call_args_list[1].args[0] == ["git", "diff", "--name-only"]

    def test_git_missing(self, temp_project, make_config):
        with patch("intentgate.validation.subprocess.run", side_effect=FileNotFoundError("git")):
            assert discover_changed_files(make_config(project_root=temp_project)) == []
