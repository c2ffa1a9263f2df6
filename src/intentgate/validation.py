"""
Validation Pipeline

Runs the configured checkers over a file set, in configuration order, and
collects a three-valued result per checker:

    pass     the tool ran and found nothing at a failing severity
    fail     the tool ran and reported findings (or timed out)
    skipped  the tool is not installed or had nothing to check

The run fails iff at least one checker failed; skipped checkers never fail
a run. The quality-gate exit code then depends on the validation level:

    pass                 -> 0
    fail, blocking       -> 1
    fail, warning        -> 2
    fail, advisory       -> 0
"""

import logging
import subprocess
from pathlib import Path
from typing import Callable, Iterable, Optional

from intentgate.checkers import (
    Checker,
    CheckerFailure,
    CheckerUnavailable,
    create_checker,
)
from intentgate.config import Configuration, ConfigurationError
from intentgate.models import CheckerResult, CheckerStatus, ValidationRun

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 10.0

EXIT_CODES = {
    "blocking": 1,
    "warning": 2,
    "advisory": 0,
}

# Called after each checker completes: (checker name, result)
ProgressCallback = Callable[[str, CheckerResult], None]


def applicable_files(
    files: Iterable[str],
    extensions: Iterable[str],
    project_root: Optional[Path] = None,
) -> list[str]:
    """
    Keep existing files with a gated extension, preserving order.

    Relative paths are resolved against project_root for the existence
    check but returned as given.
    """
    suffixes = tuple(extensions)
    selected = []
    for file_path in files:
        if not file_path or file_path in selected:
            continue
        if suffixes and not file_path.endswith(suffixes):
            continue
        candidate = Path(file_path)
        if not candidate.is_absolute() and project_root is not None:
            candidate = project_root / candidate
        if candidate.is_file():
            selected.append(file_path)
    return selected


def _git_names(args: list[str], cwd: Path) -> list[str]:
    try:
        completed = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
            cwd=cwd,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"git {' '.join(args)} failed: {e}")
        return []
    if completed.returncode != 0:
        return []
    return [line.strip() for line in completed.stdout.splitlines() if line.strip()]


def discover_changed_files(config: Configuration) -> list[str]:
    """
    Files changed in the working tree: staged first, then unstaged.

    Returns:
        Applicable changed files (may be empty outside a git checkout)
    """
    root = config.project_root
    names = _git_names(["diff", "--name-only", "--cached"], root)
    if not names:
        names = _git_names(["diff", "--name-only"], root)
    return applicable_files(names, config.file_extensions, root)


def build_checkers(config: Configuration) -> list[tuple[str, Optional[Checker], str]]:
    """
    Instantiate the enabled checkers in configuration order.

    Returns:
        (name, checker or None, error) triples; a None checker carries the
        reason its definition was rejected
    """
    built = []
    for index, definition in enumerate(config.checkers):
        name = str(definition.get("name") or f"checker-{index + 1}")
        if definition.get("enabled", True) is False:
            continue
        try:
            built.append((name, create_checker(definition), ""))
        except ConfigurationError as e:
            logger.error(f"Invalid checker definition: {e}")
            built.append((name, None, f"invalid checker definition: {e}"))
    return built


def run_checker(checker: Checker, files: list[str], validation_level: str) -> CheckerResult:
    """Run one checker and fold its outcome into a CheckerResult."""
    if not checker.is_available():
        logger.info(f"{checker.name}: not installed (skipped)")
        return CheckerResult(checker.name, CheckerStatus.SKIPPED, "not installed")

    try:
        diagnostics = checker.check(files, validation_level)
    except CheckerUnavailable as e:
        logger.info(f"{checker.name}: skipped ({e.reason})")
        return CheckerResult(checker.name, CheckerStatus.SKIPPED, e.reason)
    except CheckerFailure as e:
        logger.info(f"{checker.name}: failed")
        return CheckerResult(checker.name, CheckerStatus.FAIL, e.diagnostics)

    return CheckerResult(checker.name, CheckerStatus.PASS, diagnostics)


def validate(
    files: list[str],
    config: Configuration,
    checkers: Optional[list[Checker]] = None,
    iteration: int = 1,
    on_result: Optional[ProgressCallback] = None,
) -> ValidationRun:
    """
    Run every checker over the file set.

    Args:
        files: Files to validate
        config: Active configuration
        checkers: Checker instances (default: built from config.checkers)
        iteration: Guardian iteration number recorded on the run
        on_result: Progress callback invoked after each checker

    Returns:
        ValidationRun with one CheckerResult per checker
    """
    if checkers is None:
        entries = build_checkers(config)
    else:
        entries = [(c.name, c, "") for c in checkers]

    run = ValidationRun(files=list(files), iteration=iteration)

    for name, checker, error in entries:
        if checker is None:
            result = CheckerResult(name, CheckerStatus.SKIPPED, error)
        else:
            result = run_checker(checker, run.files, config.validation_level)
        run.checker_results[name] = result
        if on_result is not None:
            on_result(name, result)

    logger.info(
        f"Validation iteration {iteration}: {run.overall_status.value} "
        f"(failed: {run.failed_checkers}, skipped: {run.skipped_checkers})"
    )
    return run


def gate_exit_code(run: ValidationRun, validation_level: str) -> int:
    """Quality-gate exit code for a finished run."""
    if run.passed:
        return 0
    return EXIT_CODES.get(validation_level, 1)
