"""Command-line interface for Cohesion Insight"""

import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from . import __version__
from .cancellation import CancellationToken
from .cochange import NdjsonCoChangeSource
from .config import load_config
from .engine import AnalysisEngine
from .exceptions import ConfigError, CohesionInsightError, ParseError
from .formatters import get_formatter
from .logging_config import setup_logging
from .roles import load_marker_map

app = typer.Typer(
    name="cohesion-insight",
    help="Cohesion Insight - Role-Aware Cognitive Load and Cohesion Analyzer",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console(stderr=True)

EXIT_CLEAN = 0
EXIT_VIOLATIONS = 1
EXIT_USAGE = 2
EXIT_STRICT_PARSE = 3
EXIT_INTERRUPTED = 130


@app.command()
def main(
    paths: Optional[List[Path]] = typer.Argument(
        None,
        help="Source files or directories to analyze (default: current directory)",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file path (TOML format)",
    ),
    role_marker_map: Optional[Path] = typer.Option(
        None,
        "--role-marker-map",
        help="Marker -> role map (TOML [markers] table or flat JSON object)",
    ),
    co_change_source: Optional[Path] = typer.Option(
        None,
        "--co-change-source",
        help="NDJSON co-change records ({\"unit\": ..., \"timestamp\": ...} per line)",
    ),
    severity_threshold: Optional[str] = typer.Option(
        None,
        "--severity-threshold",
        help="Minimum severity that fails the run: info, warning, error (default)",
    ),
    fmt: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text (default), json",
    ),
    strict_parse: bool = typer.Option(
        False,
        "--strict-parse",
        help="Abort with exit code 3 if any source cannot be parsed",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Also write the JSON report to this file",
        dir_okay=False,
    ),
    workers: Optional[int] = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of parallel workers (default: auto-detect)",
        min=1,
        max=32,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Suppress all but ERROR logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """
    Check cognitive load against role ceilings, and cohesion of every unit.

    [bold cyan]Exit codes:[/bold cyan] 0 clean, 1 violations at or above the
    threshold, 2 invalid invocation or configuration, 3 unparseable sources
    under --strict-parse, 130 interrupted.

    [bold cyan]Examples:[/bold cyan]

      cohesion-insight src/

      cohesion-insight src/ --role-marker-map markers.toml --format json

      cohesion-insight . --co-change-source history.ndjson --severity-threshold warning
    """
    if version:
        console.print(
            f"[bold cyan]Cohesion Insight[/bold cyan] version [green]{__version__}[/green]"
        )
        raise typer.Exit(EXIT_CLEAN)

    if verbose and quiet:
        console.print("[red]Error:[/red] --verbose and --quiet are mutually exclusive")
        raise typer.Exit(EXIT_USAGE)

    try:
        formatter = get_formatter(fmt)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_USAGE)

    logger = setup_logging(verbose=verbose, quiet=quiet)
    token = CancellationToken()

    try:
        settings = load_config(
            config_file=config,
            severity_threshold=severity_threshold,
            workers=workers,
            strict_parse=True if strict_parse else None,
        )
        logger.debug(f"Loaded configuration: {settings}")

        marker_map = load_marker_map(role_marker_map) if role_marker_map is not None else None
        source = NdjsonCoChangeSource(co_change_source) if co_change_source is not None else None

        engine = AnalysisEngine(settings, marker_map=marker_map, cochange_source=source)
        report = engine.run(paths or [Path(".")], token=token)

    except ConfigError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_USAGE)

    except ParseError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] unparseable source under --strict-parse: {e}")
        raise typer.Exit(EXIT_STRICT_PARSE)

    except CohesionInsightError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_USAGE)

    except KeyboardInterrupt:
        logger.info("Analysis interrupted by user")
        console.print("\n[yellow]Analysis interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)

    formatter.render(report)

    if output is not None:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(json.dumps(report.to_json_list(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            console.print(f"[red]Error:[/red] cannot write {output}: {e}")
            raise typer.Exit(EXIT_USAGE)

    if report.cancelled:
        console.print("\n[yellow]Analysis interrupted, report is partial[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)
    if not report.clean:
        raise typer.Exit(EXIT_VIOLATIONS)
    raise typer.Exit(EXIT_CLEAN)


if __name__ == "__main__":
    app()
