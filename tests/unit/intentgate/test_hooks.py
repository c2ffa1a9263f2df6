"""Unit tests for the hook entry points.

Hooks read stdin and exit through SystemExit; stdin, argv and the external
tools are replaced in every test.
"""

import io
import json
import sys
from unittest.mock import patch

import pytest

from intentgate.guardian import GuardianReport, GuardianState
from intentgate.hooks import detect_hook, guardian_hook, parse_files, validate_hook
from tests.helpers import FakeChecker, make_run


def _run_hook(hook, monkeypatch: pytest.MonkeyPatch, stdin: str = "", argv: list[str] | None = None) -> int:
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    monkeypatch.setattr(sys, "argv", [hook.__name__, *(argv or [])])
    with pytest.raises(SystemExit) as exc_info:
        hook()
    return exc_info.value.code


class TestParseFiles:
    def test_list(self):
        assert parse_files(["a.rb", "b.rb"]) == ["a.rb", "b.rb"]

    def test_whitespace_string(self):
        assert parse_files("a.rb  b.rb\nc.rb") == ["a.rb", "b.rb", "c.rb"]

    def test_other_types(self):
        assert parse_files(None) == []
        assert parse_files(42) == []


class TestDetectHook:
    """Tests for the UserPromptSubmit hook."""

    def test_file_search_prints_directive(self, rails_project, monkeypatch, capsys):
        code = _run_hook(detect_hook, monkeypatch, json.dumps({"prompt": "find all files matching *.rb"}))

        assert code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["suppressOutput"] is False
        assert "file-finder" in output["systemMessage"]

    def test_simple_question_prints_nothing(self, rails_project, monkeypatch, capsys):
        code = _run_hook(detect_hook, monkeypatch, json.dumps({"prompt": "what is a migration?"}))

        assert code == 0
        assert capsys.readouterr().out == ""

    def test_empty_stdin(self, temp_project, monkeypatch, capsys):
        assert _run_hook(detect_hook, monkeypatch, "") == 0
        assert capsys.readouterr().out == ""

    def test_plain_text_stdin(self, rails_project, monkeypatch, capsys):
        code = _run_hook(detect_hook, monkeypatch, "find all files matching *.rb")
        assert code == 0
        assert "file-finder" in capsys.readouterr().out

    def test_broken_config_still_exits_zero(self, temp_project, monkeypatch, capsys):
        bad = temp_project / "bad.yaml"
        bad.write_text("detection: [unclosed\n")
        monkeypatch.setenv("INTENTGATE_CONFIG_PATH", str(bad))

        code = _run_hook(detect_hook, monkeypatch, json.dumps({"prompt": "find all files matching *.rb"}))

        captured = capsys.readouterr()
        assert code == 0
        assert captured.out == ""
        assert "intentgate detection error" in captured.err

    def test_disabled_mode_prints_nothing(self, rails_project, monkeypatch, capsys):
        monkeypatch.setenv("INTENTGATE_DETECTION_MODE", "disabled")
        _run_hook(detect_hook, monkeypatch, json.dumps({"prompt": "find all files matching *.rb"}))
        assert capsys.readouterr().out == ""


class TestValidateHook:
    """Tests for the quality-gate hook."""

    def test_blocking_failure_exits_one(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb", "class User; end\n")
        checkers = [FakeChecker("typecheck", "unavailable"), FakeChecker("lint", "fail")]

        with patch("intentgate.validation.build_checkers", return_value=[(c.name, c, "") for c in checkers]):
            code = _run_hook(
                validate_hook,
                monkeypatch,
                json.dumps({"phase": "models", "files": ["app/models/user.rb"]}),
            )

        assert code == 1

    @pytest.mark.parametrize("level,expected", [("warning", 2), ("advisory", 0)])
    def test_level_controls_exit_code(self, temp_project, write_file, monkeypatch, level, expected):
        write_file("app/models/user.rb")
        monkeypatch.setenv("INTENTGATE_VALIDATION_LEVEL", level)
        lint = FakeChecker("lint", "fail")

        with patch("intentgate.validation.build_checkers", return_value=[("lint", lint, "")]):
            code = _run_hook(validate_hook, monkeypatch, argv=["models", "app/models/user.rb"])

        assert code == expected

    def test_pass_exits_zero(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb")
        with patch("intentgate.validation.build_checkers", return_value=[("lint", FakeChecker("lint"), "")]):
            code = _run_hook(validate_hook, monkeypatch, "", argv=["models", "app/models/user.rb"])
        assert code == 0

    def test_malformed_input_exits_zero(self, temp_project, monkeypatch):
        assert _run_hook(validate_hook, monkeypatch, "{not json") == 0

    def test_no_applicable_files_exits_zero(self, temp_project, monkeypatch):
        code = _run_hook(validate_hook, monkeypatch, json.dumps({"phase": "docs", "files": "README.md"}))
        assert code == 0

    def test_configuration_error_exits_one(self, temp_project, monkeypatch):
        bad = temp_project / "bad.yaml"
        bad.write_text("validation: [unclosed\n")
        monkeypatch.setenv("INTENTGATE_CONFIG_PATH", str(bad))

        assert _run_hook(validate_hook, monkeypatch, json.dumps({"files": ["a.rb"]})) == 1


class TestGuardianHook:
    """Tests for the guardian hook."""

    def test_nothing_to_validate(self, temp_project, monkeypatch):
        with patch("intentgate.hooks.discover_changed_files", return_value=[]):
            assert _run_hook(guardian_hook, monkeypatch, "") == 0

    def test_exhausted_exits_one(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb")
        report = GuardianReport(GuardianState.EXHAUSTED, [make_run(["app/models/user.rb"], lint="fail")])

        with patch("intentgate.hooks.GuardianLoop.run", return_value=report):
            code = _run_hook(guardian_hook, monkeypatch, json.dumps({"files": ["app/models/user.rb"]}))

        assert code == 1

    def test_passed_exits_zero_and_writes_audit(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb")

        with patch("intentgate.validation.build_checkers", return_value=[("lint", FakeChecker("lint"), "")]):
            code = _run_hook(
                guardian_hook,
                monkeypatch,
                json.dumps({"files": ["app/models/user.rb"], "feature_id": "F-7"}),
            )

        assert code == 0
        audit_path = temp_project / ".intentgate" / "guardian-audit.log"
        records = [json.loads(line) for line in audit_path.read_text().splitlines()]
        assert records[0]["type"] == "iteration"
        assert records[0]["feature_id"] == "F-7"

    def test_max_iterations_override(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb")
        monkeypatch.setenv("INTENTGATE_CONFIG_PATH", str(temp_project / "config.yaml"))
        (temp_project / "config.yaml").write_text("guardian:\n  repair_command: [rubocop, -a, '{files}']\n")
        lint = FakeChecker("lint", "fail")

        with patch("intentgate.validation.build_checkers", return_value=[("lint", lint, "")]):
            with patch("intentgate.guardian.CommandRepairer.repair"):
                code = _run_hook(
                    guardian_hook,
                    monkeypatch,
                    json.dumps({"files": ["app/models/user.rb"], "max_iterations": 2}),
                )

        assert code == 1
        assert len(lint.calls) == 2

    def test_changed_files_used_by_default(self, temp_project, write_file, monkeypatch):
        write_file("app/models/user.rb")
        with patch("intentgate.hooks.discover_changed_files", return_value=["app/models/user.rb"]) as discover:
            with patch("intentgate.validation.build_checkers", return_value=[("lint", FakeChecker("lint"), "")]):
                code = _run_hook(guardian_hook, monkeypatch, "")

        assert code == 0
        discover.assert_called_once()
