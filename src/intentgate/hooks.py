"""
Hook entry points.

Console scripts invoked by the assistant's hook system. Each reads its input
as JSON on stdin (or arguments, for direct use) and reports through its exit
code.

    intentgate-detect    UserPromptSubmit hook
        stdin: {"prompt": "...", "cwd": "..."}
        stdout: {"systemMessage": "...", "suppressOutput": false} or nothing
        exit: always 0

    intentgate-validate  Quality gate
        stdin: {"phase": "...", "files": [...] | "a.rb b.rb"}
        argv:  PHASE FILE...
        exit: 0 pass / advisory, 1 blocking failure, 2 warning failure

    intentgate-guardian  Validate/repair cycle
        stdin: {"files": [...], "max_iterations": N, "feature_id": "..."}
        exit: 0 passed or nothing to validate, 1 exhausted or aborted

Progress goes to stderr; stdout carries hook output only.
"""

import dataclasses
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional

from intentgate.config import (
    Configuration,
    ConfigurationError,
    configure_logging,
    get_project_root,
    load_configuration,
)
from intentgate.detector import IntentDetector
from intentgate.formatter import format_directive
from intentgate.guardian import GuardianLoop
from intentgate.reporting import (
    print_checker_result,
    print_guardian_report,
    print_validation_summary,
    stderr_console,
)
from intentgate.validation import (
    applicable_files,
    discover_changed_files,
    gate_exit_code,
    validate,
)

logger = logging.getLogger(__name__)


class HookInputError(Exception):
    """Raised when hook input is not a JSON object."""
    pass


def read_hook_input() -> dict[str, Any]:
    """
    Parse the JSON object on stdin.

    Returns:
        Parsed object, empty dict for empty input

    Raises:
        HookInputError: If stdin holds something other than a JSON object
    """
    stdin_data = sys.stdin.read().strip()
    if not stdin_data:
        return {}
    try:
        data = json.loads(stdin_data)
    except json.JSONDecodeError as e:
        raise HookInputError(f"invalid JSON on stdin: {e}")
    if not isinstance(data, dict):
        raise HookInputError(f"expected a JSON object, got {type(data).__name__}")
    return data


def parse_files(value: Any) -> list[str]:
    """Accept a list of paths or a whitespace-separated string."""
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list):
        return [str(v) for v in value if isinstance(v, (str, Path))]
    return []


def _project_root(hook_input: dict[str, Any]) -> Path:
    if os.environ.get("INTENTGATE_PROJECT_ROOT"):
        return get_project_root()
    cwd = hook_input.get("cwd")
    if isinstance(cwd, str) and cwd and Path(cwd).is_dir():
        return Path(cwd)
    return get_project_root()


def _load(project_root: Path) -> Configuration:
    config = load_configuration(project_root=project_root)
    configure_logging(config.log_level)
    return config


def detect_hook() -> None:
    """
    UserPromptSubmit hook: classify the prompt and print a routing directive.

    Never fails the hook; errors are reported on stderr.
    """
    configure_logging()

    if len(sys.argv) > 1:
        # Direct CLI usage: intentgate-detect "message"
        hook_input: dict[str, Any] = {"prompt": " ".join(sys.argv[1:])}
    else:
        stdin_data = sys.stdin.read().strip()
        if not stdin_data:
            sys.exit(0)
        try:
            hook_input = json.loads(stdin_data)
        except json.JSONDecodeError:
            # Plain text prompt
            hook_input = {"prompt": stdin_data}
        if not isinstance(hook_input, dict):
            sys.exit(0)

    message = hook_input.get("prompt")
    if not isinstance(message, str) or not message.strip():
        sys.exit(0)

    try:
        config = _load(_project_root(hook_input))
        detection = IntentDetector(config).detect(message)
        output = format_directive(detection.decision, config)
        if output:
            print(json.dumps(output))
    except Exception as e:
        # Log error to stderr, never block the prompt
        print(f"intentgate detection error: {e}", file=sys.stderr)

    sys.exit(0)


def validate_hook() -> None:
    """Quality-gate hook: run the checkers and exit with the gate code."""
    configure_logging()
    console = stderr_console()

    if len(sys.argv) > 1:
        hook_input: dict[str, Any] = {"phase": sys.argv[1], "files": sys.argv[2:]}
    else:
        try:
            hook_input = read_hook_input()
        except HookInputError as e:
            console.print(f"[yellow]⚠[/yellow] Ignoring malformed hook input: {e}")
            sys.exit(0)

    phase = str(hook_input.get("phase") or "implementation")
    project_root = _project_root(hook_input)

    try:
        config = _load(project_root)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    files = applicable_files(
        parse_files(hook_input.get("files")), config.file_extensions, project_root
    )
    if not files:
        console.print(f"[dim]No files to validate for phase '{phase}'[/dim]")
        sys.exit(0)

    console.print(f"[bold]Validating {len(files)} file(s)[/bold] [dim](phase: {phase})[/dim]")
    run = validate(
        files,
        config,
        on_result=lambda name, result: print_checker_result(console, name, result),
    )

    exit_code = gate_exit_code(run, config.validation_level)
    print_validation_summary(console, run, config.validation_level, exit_code)
    sys.exit(exit_code)


def _max_iterations_override(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number >= 1 else None


def guardian_hook() -> None:
    """Guardian hook: run the validate/repair cycle over the changed files."""
    configure_logging()
    console = stderr_console()

    try:
        hook_input = read_hook_input()
    except HookInputError as e:
        console.print(f"[yellow]⚠[/yellow] Ignoring malformed hook input: {e}")
        sys.exit(0)

    project_root = _project_root(hook_input)
    try:
        config = _load(project_root)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] Configuration error: {e}")
        sys.exit(1)

    override = _max_iterations_override(hook_input.get("max_iterations"))
    if override is not None:
        config = dataclasses.replace(config, max_iterations=override)

    requested = parse_files(hook_input.get("files"))
    if requested:
        files = applicable_files(requested, config.file_extensions, project_root)
    else:
        files = discover_changed_files(config)

    if not files:
        console.print("[dim]No changed files to validate[/dim]")
        sys.exit(0)

    feature_id = hook_input.get("feature_id")
    console.print(
        f"[bold]Guardian: validating {len(files)} file(s)[/bold] "
        f"[dim](max {config.max_iterations} iteration(s))[/dim]"
    )

    def validator(paths: list[str], iteration: int):
        console.print(f"[bold]Iteration {iteration}[/bold]")
        return validate(
            paths,
            config,
            iteration=iteration,
            on_result=lambda name, result: print_checker_result(console, name, result),
        )

    loop = GuardianLoop.from_config(
        config,
        validator=validator,
        feature_id=str(feature_id) if feature_id else None,
    )
    report = loop.run(files)
    print_guardian_report(console, report)
    sys.exit(0 if report.passed else 1)
