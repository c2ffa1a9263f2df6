"""Intentgate CLI entry point."""

import typer
from rich.console import Console

from . import __version__
from .config_commands import checkers_command, config_command
from .detect_command import detect_command
from .gate_commands import guardian_command, validate_command

app = typer.Typer(
    name="intentgate",
    help="Intentgate - intent routing and quality gates for AI coding assistants",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"intentgate version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """Intentgate - intent routing and quality gates for AI coding assistants."""
    pass


# Register the detect command
app.command(name="detect")(detect_command)

# Register the quality-gate commands
app.command(name="validate")(validate_command)
app.command(name="guardian")(guardian_command)

# Register the inspection commands
app.command(name="checkers")(checkers_command)
app.command(name="config")(config_command)


if __name__ == "__main__":
    app()
