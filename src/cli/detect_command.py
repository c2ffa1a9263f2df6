"""The intentgate detect command implementation."""

import json
from typing import Optional

import typer

from intentgate.detector import IntentDetector
from intentgate.formatter import format_directive

from .config_commands import CONFIG_OPTION_HELP, load_or_exit
from .console import console, create_table, print_info, print_panel


def detect_command(
    prompt: str = typer.Argument(..., help="Request text to classify"),
    json_output: bool = typer.Option(False, "--json", help="Print the detection as JSON"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_OPTION_HELP),
) -> None:
    """Classify a request and show the routing decision.

    Runs the same pipeline as the intentgate-detect hook and shows which
    stages ran and what directive would be emitted.
    """
    config = load_or_exit(config_path)
    detection = IntentDetector(config).detect(prompt)
    directive = format_directive(detection.decision, config)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "stages": detection.stages,
                    "result": detection.result.to_dict(),
                    "decision": detection.decision.to_dict(),
                    "directive": directive,
                },
                indent=2,
                default=str,
            )
        )
        return

    table = create_table("Intent Detection")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Stages", " -> ".join(detection.stages) or "(none)")
    table.add_row("Source", detection.result.source.value)
    table.add_row("Intent", detection.result.intent_category.value)
    table.add_row("Confidence", f"{detection.result.confidence:.2f}")
    table.add_row("Decision", detection.decision.decision_type.value)
    table.add_row("Target", detection.decision.target_id or "-")
    console.print(table)

    if directive:
        print_panel(f"Directive ({config.detection_mode})", directive["systemMessage"])
    else:
        reason = detection.decision.payload.get("reason") or detection.result.extra_flags.get("reason")
        print_info(f"No directive{f': {reason}' if reason else ''}")
