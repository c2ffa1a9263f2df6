"""Checker Abstract Interface

Defines the interface for external validation tools (type checkers,
linters, static analyzers) and the registry of checker kinds used to build
them from configuration.

Checker kinds:
    - command: run an argv template over the file set; pass on exit code 0
      with no ``fail_pattern`` match in the output
    - json_findings: run a report command that prints JSON; fail when any
      finding has a severity listed in ``fail_severities``

Checker definition (validation.checkers entry):
    name: str - Checker name reported in results
    kind: str - Registered kind (default: command)
    command: list | str - argv template; placeholders {files}, {file}, {fail_level}
    probe: list | str - Optional availability probe (must exit 0)
    timeout: float - Seconds before the run counts as failed (default: 300)
    enabled: bool - Set false to drop the checker
"""

import json
import logging
import re
import shlex
import shutil
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Optional, Sequence

from intentgate.config import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 300.0
PROBE_TIMEOUT = 30.0
MARKER_SCAN_LINES = 5
MAX_FINDINGS_SHOWN = 5


class CheckerUnavailable(Exception):
    """Raised when a checker cannot run (tool missing, nothing to check)."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"{name}: {reason}")
        self.name = name
        self.reason = reason


class CheckerFailure(Exception):
    """Raised when a checker ran and reported findings."""

    def __init__(self, name: str, diagnostics: str):
        super().__init__(f"{name} reported findings")
        self.name = name
        self.diagnostics = diagnostics


def fail_level_for(validation_level: str) -> str:
    """Lint severity that fails the run: stricter when blocking."""
    return "warning" if validation_level == "blocking" else "error"


def _argv(value: Any, name: str, key: str) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, (list, tuple)) and value and all(isinstance(v, str) for v in value):
        return list(value)
    raise ConfigurationError(f"Checker '{name}': {key} must be a string or list of strings")


def run_command(argv: Sequence[str], timeout: float) -> tuple[int, str]:
    """
    Run a tool and return (exit code, combined output).

    Raises:
        FileNotFoundError: If the executable does not exist
        subprocess.TimeoutExpired: If the tool exceeds the timeout
    """
    completed = subprocess.run(
        list(argv),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        timeout=timeout,
    )
    return completed.returncode, completed.stdout or ""


class Checker(ABC):
    """
    Abstract interface for validation tools.

    Attributes:
        name: Checker name used in results and the audit log
        timeout: Wall-clock budget per tool invocation
    """

    kind = "abstract"

    def __init__(self, name: str, timeout: float = DEFAULT_TIMEOUT):
        self.name = name
        self.timeout = timeout

    @abstractmethod
    def is_available(self) -> bool:
        """Return True if the underlying tool is installed."""
        pass

    @abstractmethod
    def check(self, files: list[str], validation_level: str = "blocking") -> str:
        """
        Run the tool over the file set.

        Args:
            files: Files to check (already filtered to existing files)
            validation_level: Active validation level (some tools adapt severity)

        Returns:
            Diagnostics text of a passing run

        Raises:
            CheckerUnavailable: If the tool cannot run or has nothing to check
            CheckerFailure: If the tool reported findings
        """
        pass


# Checker kind registry for the factory function
_CHECKER_KINDS: dict[str, type] = {}


def register_checker_kind(kind: str):
    """
    Decorator to register a checker implementation under a kind name.

    Usage:
        @register_checker_kind("command")
        class CommandChecker(Checker):
            ...
    """
    def decorator(cls):
        cls.kind = kind
        _CHECKER_KINDS[kind] = cls
        return cls
    return decorator


def get_available_kinds() -> list[str]:
    """Return registered checker kinds."""
    return list(_CHECKER_KINDS.keys())


@register_checker_kind("command")
class CommandChecker(Checker):
    """Runs an argv template; exit code 0 and no fail_pattern match is a pass."""

    def __init__(
        self,
        name: str,
        command: list[str],
        probe: Optional[list[str]] = None,
        per_file: bool = False,
        require_marker: Optional[str] = None,
        fail_pattern: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(name, timeout)
        self.command = command
        self.probe = probe
        self.per_file = per_file
        self.require_marker = require_marker
        self.fail_pattern = re.compile(fail_pattern) if fail_pattern else None

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> "CommandChecker":
        name = definition["name"]
        probe = definition.get("probe")
        fail_pattern = definition.get("fail_pattern")
        if fail_pattern:
            try:
                re.compile(fail_pattern)
            except re.error as e:
                raise ConfigurationError(f"Checker '{name}': invalid fail_pattern: {e}")
        return cls(
            name=name,
            command=_argv(definition.get("command"), name, "command"),
            probe=_argv(probe, name, "probe") if probe else None,
            per_file=bool(definition.get("per_file", False)),
            require_marker=definition.get("require_marker"),
            fail_pattern=fail_pattern,
            timeout=float(definition.get("timeout", DEFAULT_TIMEOUT)),
        )

    def is_available(self) -> bool:
        if shutil.which(self.command[0]) is None:
            return False
        if self.probe is None:
            return True
        try:
            code, _ = run_command(self.probe, PROBE_TIMEOUT)
        except (OSError, subprocess.TimeoutExpired):
            return False
        return code == 0

    def select_files(self, files: list[str]) -> list[str]:
        """Keep files carrying the required marker in their first lines."""
        if not self.require_marker:
            return list(files)

        selected = []
        for file_path in files:
            try:
                with open(file_path, "r", encoding="utf-8", errors="ignore") as f:
                    head = [next(f, "") for _ in range(MARKER_SCAN_LINES)]
            except OSError:
                continue
            if any(self.require_marker in line for line in head):
                selected.append(file_path)
        return selected

    def expand(self, files: list[str], fail_level: str) -> list[str]:
        """Fill the argv template."""
        argv = []
        for token in self.command:
            if token == "{files}":
                argv.extend(files)
            elif token == "{file}":
                argv.extend(files[:1])
            else:
                argv.append(token.replace("{fail_level}", fail_level))
        return argv

    def _run_once(self, argv: list[str]) -> tuple[bool, str]:
        try:
            code, output = run_command(argv, self.timeout)
        except FileNotFoundError:
            raise CheckerUnavailable(self.name, f"{argv[0]} not found")
        except OSError as e:
            raise CheckerUnavailable(self.name, f"{argv[0]} could not run: {e}")
        except subprocess.TimeoutExpired:
            return False, f"timed out after {self.timeout:g}s"

        failed = code != 0 or bool(self.fail_pattern and self.fail_pattern.search(output))
        return not failed, output.strip()

    def check(self, files: list[str], validation_level: str = "blocking") -> str:
        targets = self.select_files(files)
        if not targets:
            reason = (
                f"no files with '{self.require_marker}'" if self.require_marker else "no files"
            )
            raise CheckerUnavailable(self.name, reason)

        fail_level = fail_level_for(validation_level)
        batches = [[f] for f in targets] if self.per_file else [targets]

        outputs = []
        failed = False
        for batch in batches:
            ok, output = self._run_once(self.expand(batch, fail_level))
            if output:
                outputs.append(f"{batch[0]}:\n{output}" if self.per_file else output)
            failed = failed or not ok

        diagnostics = "\n".join(outputs)
        if failed:
            raise CheckerFailure(self.name, diagnostics)
        return diagnostics


@register_checker_kind("json_findings")
class JsonFindingsChecker(Checker):
    """Runs a JSON report command; findings at a failing severity fail the run."""

    def __init__(
        self,
        name: str,
        command: list[str],
        findings_key: str = "warnings",
        severity_field: str = "confidence",
        fail_severities: Sequence[str] = ("High",),
        timeout: float = DEFAULT_TIMEOUT,
    ):
        super().__init__(name, timeout)
        self.command = command
        self.findings_key = findings_key
        self.severity_field = severity_field
        self.fail_severities = {s.lower() for s in fail_severities}

    @classmethod
    def from_definition(cls, definition: dict[str, Any]) -> "JsonFindingsChecker":
        name = definition["name"]
        severities = definition.get("fail_severities", ["High"])
        if isinstance(severities, str):
            severities = [severities]
        return cls(
            name=name,
            command=_argv(definition.get("command"), name, "command"),
            findings_key=definition.get("findings_key", "warnings"),
            severity_field=definition.get("severity_field", "confidence"),
            fail_severities=severities,
            timeout=float(definition.get("timeout", DEFAULT_TIMEOUT)),
        )

    def is_available(self) -> bool:
        return shutil.which(self.command[0]) is not None

    def _describe(self, finding: dict[str, Any]) -> str:
        kind = finding.get("warning_type") or finding.get("type") or finding.get("check_name") or "finding"
        message = str(finding.get("message", ""))[:100]
        location = finding.get("file")
        line = finding.get("line")
        where = f" ({location}:{line})" if location and line else f" ({location})" if location else ""
        return f"- {kind}: {message}{where}"

    def check(self, files: list[str], validation_level: str = "blocking") -> str:
        try:
            _, output = run_command(self.command, self.timeout)
        except FileNotFoundError:
            raise CheckerUnavailable(self.name, f"{self.command[0]} not found")
        except OSError as e:
            raise CheckerUnavailable(self.name, f"{self.command[0]} could not run: {e}")
        except subprocess.TimeoutExpired:
            raise CheckerFailure(self.name, f"timed out after {self.timeout:g}s")

        try:
            report = json.loads(output)
        except json.JSONDecodeError:
            raise CheckerFailure(self.name, f"unparseable report:\n{output.strip()[:500]}")

        findings = report.get(self.findings_key, []) if isinstance(report, dict) else []
        if not isinstance(findings, list):
            findings = []

        failing = [
            f for f in findings
            if isinstance(f, dict)
            and str(f.get(self.severity_field, "")).lower() in self.fail_severities
        ]

        summary = f"{len(findings)} finding(s), {len(failing)} at failing severity"
        if failing:
            shown = "\n".join(self._describe(f) for f in failing[:MAX_FINDINGS_SHOWN])
            raise CheckerFailure(self.name, f"{summary}\n{shown}")
        return summary


def create_checker(definition: dict[str, Any]) -> Checker:
    """
    Factory function to create a checker from its configuration entry.

    Raises:
        ConfigurationError: If the kind is unknown or the entry is malformed
    """
    if not definition.get("name"):
        raise ConfigurationError(f"Checker definition without name: {definition!r}")

    kind = definition.get("kind", "command")
    if kind not in _CHECKER_KINDS:
        raise ConfigurationError(
            f"Unknown checker kind: '{kind}'. Available kinds: {get_available_kinds()}"
        )

    checker_class = _CHECKER_KINDS[kind]
    try:
        return checker_class.from_definition(definition)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Checker '{definition['name']}': {e}")
