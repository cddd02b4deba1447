"""Rich terminal formatter for Cohesion Insight."""

from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..report import Report, Severity, Violation
from .base import BaseFormatter

_SEVERITY_STYLE = {
    Severity.ERROR: "[red bold]error[/red bold]",
    Severity.WARNING: "[yellow]warning[/yellow]",
    Severity.INFO: "[dim]info[/dim]",
}


def _location(v: Violation) -> str:
    if v.method_id:
        return f"{v.unit_id}.{v.method_id}"
    return v.unit_id


def _score(v: Violation) -> str:
    if v.score is None:
        return ""
    if v.threshold is None:
        return str(v.score)
    return f"{v.score}/{v.threshold}"


class TextFormatter(BaseFormatter):
    """Summary line, findings table, and suggested splits."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def render(self, report: Report) -> None:
        self._print(report, self.console)

    def format(self, report: Report) -> str:
        console = Console(width=120, no_color=True, highlight=False)
        with console.capture() as capture:
            self._print(report, console)
        return capture.get()

    def _print(self, report: Report, console: Console) -> None:
        counts = report.counts()
        status = "[red]FAILED[/red]" if not report.clean else "[green]clean[/green]"
        if report.cancelled:
            status += " [yellow](partial: run cancelled)[/yellow]"
        console.print(
            f"[bold]Cohesion Insight[/bold]  {report.units_analyzed} units analyzed, "
            f"{report.units_skipped} skipped  |  "
            f"{counts[Severity.ERROR]} errors, {counts[Severity.WARNING]} warnings, "
            f"{counts[Severity.INFO]} info  |  threshold {report.severity_threshold.value}: "
            f"{status}"
        )

        if not report.violations:
            console.print("[green]No findings.[/green]")
            return

        table = Table(show_header=True, header_style="bold", expand=False)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Kind", no_wrap=True)
        table.add_column("Location", style="cyan")
        table.add_column("Score", justify="right", no_wrap=True)
        table.add_column("Message")
        for v in report.violations:
            table.add_row(
                _SEVERITY_STYLE[v.severity],
                v.kind.value,
                escape(_location(v)),
                _score(v),
                escape(v.message),
            )
        console.print(table)

        for v in report.violations:
            if not v.suggested_split:
                continue
            console.print(f"\n[bold]Suggested split for {escape(v.unit_id)}[/bold] ({v.kind.value}):")
            for index, component in enumerate(v.suggested_split, start=1):
                console.print(
                    f"  {index}. methods {', '.join(component.methods)}  "
                    f"[dim]members {', '.join(component.members)}[/dim]"
                )
