"""The intentgate validate and guardian commands."""

import dataclasses
from typing import Optional

import typer

from intentgate.config import VALIDATION_LEVELS, Configuration
from intentgate.guardian import GuardianLoop
from intentgate.models import ValidationRun
from intentgate.reporting import (
    print_checker_result,
    print_guardian_report,
    print_validation_summary,
    validation_table,
)
from intentgate.validation import (
    applicable_files,
    discover_changed_files,
    gate_exit_code,
    validate,
)

from .config_commands import CONFIG_OPTION_HELP, load_or_exit
from .console import console, print_error, print_info


def _select_files(config: Configuration, files: Optional[list[str]]) -> list[str]:
    if files:
        return applicable_files(files, config.file_extensions, config.project_root)
    return discover_changed_files(config)


def validate_command(
    files: Optional[list[str]] = typer.Argument(
        None, help="Files to validate (default: changed files from git)"
    ),
    level: Optional[str] = typer.Option(
        None,
        "--level",
        "-l",
        help="Validation level: blocking, warning or advisory",
    ),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run the configured checkers once and exit with the quality-gate code."""
    config = load_or_exit(config_path)
    if level is not None:
        if level not in VALIDATION_LEVELS:
            print_error(f"Unknown validation level: {level}. Choose from {', '.join(VALIDATION_LEVELS)}")
            raise typer.Exit(1)
        config = dataclasses.replace(config, validation_level=level)

    targets = _select_files(config, files)
    if not targets:
        print_info("No files to validate")
        return

    console.print(f"[bold]Validating {len(targets)} file(s)[/bold]")
    run = validate(
        targets,
        config,
        on_result=lambda name, result: print_checker_result(console, name, result),
    )
    console.print(validation_table(run))

    exit_code = gate_exit_code(run, config.validation_level)
    print_validation_summary(console, run, config.validation_level, exit_code)
    if exit_code:
        raise typer.Exit(exit_code)


def guardian_command(
    files: Optional[list[str]] = typer.Argument(
        None, help="Files to validate (default: changed files from git)"
    ),
    max_iterations: Optional[int] = typer.Option(
        None,
        "--max-iterations",
        "-n",
        min=1,
        help="Validation attempts before giving up",
    ),
    feature_id: Optional[str] = typer.Option(
        None, "--feature-id", help="Identifier recorded in the audit log"
    ),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Run the validate/repair cycle until the checkers pass or attempts run out."""
    config = load_or_exit(config_path)
    if max_iterations is not None:
        config = dataclasses.replace(config, max_iterations=max_iterations)

    targets = _select_files(config, files)
    if not targets:
        print_info("No files to validate")
        return

    if config.repair_command is None:
        print_info("No repair command configured: the first failure is final")

    def validator(paths: list[str], iteration: int) -> ValidationRun:
        console.print(f"[bold]Iteration {iteration}/{config.max_iterations}[/bold]")
        return validate(
            paths,
            config,
            iteration=iteration,
            on_result=lambda name, result: print_checker_result(console, name, result),
        )

    report = GuardianLoop.from_config(config, validator=validator, feature_id=feature_id).run(targets)
    print_guardian_report(console, report)
    console.print(f"[dim]Audit log: {config.audit_log_path}[/dim]")
    if not report.passed:
        raise typer.Exit(1)
