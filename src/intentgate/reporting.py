"""Human-readable progress and summaries for validation and guardian runs."""

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from intentgate.guardian import GuardianReport, GuardianState
from intentgate.models import CheckerResult, CheckerStatus, ValidationRun

STATUS_MARKUP = {
    CheckerStatus.PASS: "[green]✓ pass[/green]",
    CheckerStatus.FAIL: "[red]✗ fail[/red]",
    CheckerStatus.SKIPPED: "[dim]- skipped[/dim]",
}

STATE_STYLES = {
    GuardianState.PASSED: "green",
    GuardianState.EXHAUSTED: "red",
    GuardianState.ABORTED: "yellow",
}

# Lines of diagnostics shown per failed checker in summaries
MAX_DIAGNOSTIC_LINES = 20


def stderr_console() -> Console:
    """Console for hook progress; stdout stays reserved for hook output."""
    return Console(stderr=True, highlight=False)


def print_checker_result(console: Console, name: str, result: CheckerResult) -> None:
    """One progress line per finished checker."""
    line = f"  {name}: {STATUS_MARKUP[result.status]}"
    if result.status == CheckerStatus.SKIPPED and result.diagnostics:
        line += f" [dim]({result.diagnostics})[/dim]"
    console.print(line)


def _clip(text: str) -> str:
    lines = text.splitlines()
    if len(lines) <= MAX_DIAGNOSTIC_LINES:
        return text
    hidden = len(lines) - MAX_DIAGNOSTIC_LINES
    return "\n".join(lines[:MAX_DIAGNOSTIC_LINES] + [f"... ({hidden} more lines)"])


def validation_table(run: ValidationRun) -> Table:
    table = Table(title=f"Validation (iteration {run.iteration})")
    table.add_column("Checker", style="cyan")
    table.add_column("Status")
    table.add_column("Details", style="dim")
    for name, result in run.checker_results.items():
        details = result.diagnostics.splitlines()[0] if result.diagnostics else ""
        table.add_row(name, STATUS_MARKUP[result.status], details[:60])
    return table


def print_validation_summary(
    console: Console,
    run: ValidationRun,
    validation_level: str,
    exit_code: int,
) -> None:
    """Overall outcome plus diagnostics of every failed checker."""
    for name in run.failed_checkers:
        diagnostics = run.checker_results[name].diagnostics or "(no output)"
        console.print(Panel(_clip(diagnostics), title=name, border_style="red"))

    if run.passed:
        console.print(f"[green]✓[/green] Validation passed ({len(run.files)} file(s))")
    elif exit_code == 0:
        console.print(
            f"[yellow]⚠[/yellow] Validation failed: {', '.join(run.failed_checkers)} "
            f"({validation_level} level, not blocking)"
        )
    else:
        console.print(
            f"[red]✗[/red] Validation failed: {', '.join(run.failed_checkers)} "
            f"({validation_level} level, exit {exit_code})"
        )


def print_guardian_report(console: Console, report: GuardianReport) -> None:
    style = STATE_STYLES.get(report.state, "blue")
    if report.passed:
        console.print(
            f"[green]✓[/green] Guardian passed after {report.iterations} iteration(s)"
        )
        return
    console.print(
        Panel(
            _clip(report.manual_intervention_report()),
            title=f"Guardian {report.state.value}",
            border_style=style,
        )
    )
