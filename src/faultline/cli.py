from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import click
import typer
from rich.console import Console

from faultline import __version__
from faultline.adapters.registry import AdapterRegistry, AdapterUnavailable, PluginLoadError
from faultline.config import ConfigurationError, FaultlineConfig, load_config
from faultline.core import CorrelationCore
from faultline.engine.metrics import RISK_LEVEL_THRESHOLDS
from faultline.logging_utils import configure_logging
from faultline.paths import is_project_relative
from faultline.reporters.json_reporter import parse_json_report, render_city_json, render_json
from faultline.reporters.terminal import render_terminal

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Faultline: correlate findings from many analysis tools and rank hotspots.",
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

_FAIL_ON_SCORES = {level: score for score, level in RISK_LEVEL_THRESHOLDS} | {"low": 0}


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def _main(
    ctx: typer.Context,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Verbose logs (printed to stderr)."),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Reduce non-essential output."),
    ] = False,
) -> None:
    """Faultline CLI."""

    if verbose and quiet:
        raise typer.BadParameter("Choose at most one: --verbose or --quiet.")
    configure_logging(verbose=verbose, quiet=quiet)
    ctx.obj = {"verbose": verbose, "quiet": quiet}


def _cli_settings() -> dict[str, bool]:
    ctx = click.get_current_context(silent=True)
    if ctx is None or not isinstance(ctx.obj, dict):
        return {"verbose": False, "quiet": False}
    return {"verbose": bool(ctx.obj.get("verbose", False)), "quiet": bool(ctx.obj.get("quiet", False))}


def _parse_input_spec(spec: str) -> tuple[str, str]:
    tool, sep, path = spec.partition("=")
    if not sep or not tool.strip() or not path.strip():
        raise typer.BadParameter(f"Expected TOOL=PATH, got {spec!r}.", param_hint="--input")
    return tool.strip().lower(), path.strip()


def _read_input(path: str) -> Any:
    if path == "-":
        raw = sys.stdin.read()
    else:
        raw = Path(path).read_text(encoding="utf-8", errors="replace")
    return json.loads(raw)


def _read_sources(config: FaultlineConfig, canonical_paths: list[str]) -> dict[str, str]:
    """Load source text for function-boundary correlation; files outside the project root are never read."""

    root = Path(config.project_root).resolve()
    contents: dict[str, str] = {}
    for canonical_path in canonical_paths:
        if not is_project_relative(canonical_path):
            continue
        candidate = (root / canonical_path).resolve()
        if not candidate.is_relative_to(root) or not candidate.is_file():
            continue
        try:
            contents[canonical_path] = candidate.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug("Skipping source %s: %s", candidate, exc)
    return contents


def _load_registry(config: FaultlineConfig) -> AdapterRegistry:
    try:
        return AdapterRegistry.with_builtins(config.plugins)
    except (PluginLoadError, ConfigurationError) as exc:
        err_console.print(f"Failed to load plugins: {exc}")
        raise typer.Exit(code=2) from exc


def _load_project_config(path: Path, overrides: dict[str, Any]) -> FaultlineConfig:
    try:
        return load_config(path, overrides=overrides)
    except ConfigurationError as exc:
        err_console.print(f"Invalid configuration: {exc}")
        raise typer.Exit(code=2) from exc


@app.command()
def analyze(
    path: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            help="Project directory (default: current directory).",
        ),
    ] = Path("."),
    inputs: Annotated[
        list[str] | None,
        typer.Option(
            "--input",
            "-i",
            help="Tool output to ingest as TOOL=PATH (repeatable; PATH '-' reads stdin).",
        ),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: terminal, json, city.", show_default=True),
    ] = "terminal",
    function_boundaries: Annotated[
        bool | None,
        typer.Option(
            "--function-boundaries/--no-function-boundaries",
            help="Correlate by enclosing function instead of line window (default: use config).",
            show_default=False,
        ),
    ] = None,
    min_score: Annotated[
        int | None,
        typer.Option("--min-score", min=50, max=100, help="Minimum hotspot score to report (50-100)."),
    ] = None,
    fail_on: Annotated[
        str | None,
        typer.Option("--fail-on", help="Exit 1 when any hotspot reaches this risk level: critical, high, medium, low."),
    ] = None,
) -> None:
    """
    Normalize, deduplicate and correlate tool findings, then report hotspots.
    """

    settings = _cli_settings()
    normalized_format = output_format.strip().lower()
    if normalized_format not in {"terminal", "json", "city"}:
        raise typer.BadParameter("Unsupported format. Use: terminal, json, city.")
    normalized_fail_on = fail_on.strip().lower() if fail_on else None
    if normalized_fail_on is not None and normalized_fail_on not in _FAIL_ON_SCORES:
        raise typer.BadParameter("Unsupported risk level. Use: critical, high, medium, low.")

    overrides: dict[str, Any] = {}
    if function_boundaries is not None:
        overrides["function-boundary-mode"] = function_boundaries
    if min_score is not None:
        overrides["hotspot-min-score"] = min_score
    config = _load_project_config(path, overrides)
    core = CorrelationCore(config, registry=_load_registry(config))

    for spec in inputs or []:
        tool, input_path = _parse_input_spec(spec)
        try:
            raw = _read_input(input_path)
        except (OSError, ValueError) as exc:
            err_console.print(f"Failed to read {tool} output {input_path!r}: {exc}")
            raise typer.Exit(code=2) from exc
        try:
            core.ingest(tool, raw)
        except AdapterUnavailable as exc:
            err_console.print(str(exc))
            raise typer.Exit(code=2) from exc

    file_contents = None
    if config.function_boundary_mode:
        file_contents = _read_sources(config, list(core.result.file_metrics))
    result = core.run(file_contents)

    if normalized_format == "json":
        typer.echo(render_json(result))
    elif normalized_format == "city":
        typer.echo(render_city_json(result))
    else:
        render_terminal(result.to_dict(), console=console, show_details=not settings["quiet"])

    if normalized_fail_on is not None:
        floor = _FAIL_ON_SCORES[normalized_fail_on]
        if any(hotspot.risk_score >= floor for hotspot in result.hotspots):
            raise typer.Exit(code=1)


@app.command()
def adapters(
    path: Annotated[
        Path,
        typer.Argument(
            exists=True,
            file_okay=False,
            dir_okay=True,
            resolve_path=True,
            help="Project directory used to load config + plugin adapters (default: current directory).",
        ),
    ] = Path("."),
    output_format: Annotated[
        str,
        typer.Option("--format", help="Output format: terminal, json.", show_default=True),
    ] = "terminal",
) -> None:
    """
    List available adapters (built-in + plugin adapters) and their metadata.
    """

    from rich.table import Table

    config = _load_project_config(path, {})
    registry = _load_registry(config)
    rows = [
        {
            "name": adapter.name,
            "version": adapter.version,
            "category": adapter.category,
            "analysis_types": list(adapter.analysis_types),
            "confidence": adapter.confidence,
            "description": adapter.description,
        }
        for adapter in registry
    ]

    normalized = output_format.strip().lower()
    if normalized == "json":
        typer.echo(json.dumps(rows, indent=2, sort_keys=True))
        return
    if normalized != "terminal":
        raise typer.BadParameter("Unsupported format. Use: terminal, json.")

    table = Table(title="Faultline Adapters")
    table.add_column("Name", style="bold")
    table.add_column("Version")
    table.add_column("Category")
    table.add_column("Analysis types")
    table.add_column("Confidence", justify="right")
    table.add_column("Description")
    for row in rows:
        table.add_row(
            str(row["name"]),
            str(row["version"]),
            str(row["category"]),
            ", ".join(row["analysis_types"]),
            f"{row['confidence']:.2f}",
            str(row["description"] or "-"),
        )
    console.print(table)


@app.command()
def report(
    input_json: Annotated[
        str,
        typer.Argument(help="Input JSON result path, or '-' to read from stdin."),
    ],
) -> None:
    """
    Render a previously saved JSON result in the terminal.
    """

    try:
        if input_json.strip() == "-":
            raw = sys.stdin.read()
        else:
            raw = Path(input_json).read_text(encoding="utf-8", errors="replace")
        payload = parse_json_report(raw)
    except (OSError, ValueError) as exc:
        err_console.print(f"Invalid JSON report: {exc}")
        raise typer.Exit(code=2) from exc

    settings = _cli_settings()
    render_terminal(payload, console=console, show_details=not settings["quiet"])
