"""The intentgate config and checkers commands."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from intentgate.config import (
    Configuration,
    ConfigurationError,
    configure_logging,
    find_config_file,
    get_project_root,
    load_config,
)
from intentgate.validation import build_checkers

from .console import console, create_table, print_error, print_info

CONFIG_OPTION_HELP = "Config file (default: INTENTGATE_CONFIG_PATH or .intentgate/config.yaml)"


def load_or_exit(config_path: Optional[str]) -> Configuration:
    """Load the configuration, or exit 1 with an error message."""
    project_root = get_project_root()
    try:
        config = Configuration.from_dict(load_config(config_path, project_root), project_root)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)
    configure_logging(config.log_level)
    return config


def _jsonable(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, tuple):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def config_command(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
    json_output: bool = typer.Option(False, "--json", help="Print the resolved settings as JSON"),
) -> None:
    """Show the effective configuration.

    Prints the merged settings (defaults, config file, environment overrides).
    """
    project_root = get_project_root()
    try:
        merged = load_config(config_path, project_root)
    except ConfigurationError as e:
        print_error(f"Configuration error: {e}")
        raise typer.Exit(1)

    if json_output:
        settings = Configuration.from_dict(merged, project_root)
        typer.echo(json.dumps(_jsonable(asdict(settings)), indent=2))
        return

    source = config_path or find_config_file(project_root)
    print_info(f"Config file: {source or 'none (defaults)'}")
    console.print(yaml.safe_dump(merged, sort_keys=False), markup=False, highlight=False)


def checkers_command(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """List the configured checkers and whether their tools are installed."""
    config = load_or_exit(config_path)

    table = create_table("Configured Checkers")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Kind", style="blue")
    table.add_column("Available")
    table.add_column("Command", style="dim")

    for index, (name, checker, error) in enumerate(build_checkers(config), start=1):
        if checker is None:
            table.add_row(str(index), name, "?", "[red]invalid[/red]", error)
            continue
        available = "[green]yes[/green]" if checker.is_available() else "[yellow]no[/yellow]"
        command = " ".join(getattr(checker, "command", []))
        table.add_row(str(index), name, checker.kind, available, command)

    console.print(table)
    console.print(f"[dim]Validation level: {config.validation_level}[/dim]")
