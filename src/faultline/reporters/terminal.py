from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from faultline import __version__
from faultline.engine.types import SEVERITIES

_SEVERITY_STYLE = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "cyan", "info": "dim"}
_RISK_ICON = {"critical": "✖", "high": "▲", "medium": "⚠", "low": "•"}


def render_terminal(report: Mapping[str, Any], *, console: Console, show_details: bool = True) -> None:
    """Print a result payload (as produced by `UnifiedResult.to_dict`)."""

    summary = report["summary"]
    header = Text()
    header.append("Faultline ", style="bold")
    header.append(f"v{__version__}", style="dim")
    header.append(" · correlation and hotspot report", style="dim")
    console.print(
        Panel(
            header,
            subtitle=f"{summary['totalIssues']} issues in {summary['filesAnalyzed']} files",
            border_style="cyan",
        )
    )

    hotspots: Sequence[Mapping[str, Any]] = report.get("hotspots") or []
    if show_details and hotspots:
        _print_hotspots(hotspots, console=console)
    elif show_details:
        console.print(Text("No hotspots at or above the minimum score.", style="dim"))
        console.print()

    _print_summary(report, console=console)


def _print_hotspots(hotspots: Sequence[Mapping[str, Any]], *, console: Console) -> None:
    table = Table(title="Hotspots")
    table.add_column("Risk", justify="right", style="bold")
    table.add_column("Level")
    table.add_column("Kind")
    table.add_column("Location")
    table.add_column("Issues", justify="right")
    table.add_column("Tools")
    for hotspot in hotspots:
        level = str(hotspot["riskLevel"])
        line_range = hotspot.get("lineRange") or {}
        location = str(hotspot["canonicalPath"])
        if hotspot["kind"] == "cluster" and line_range.get("start"):
            end = line_range.get("end")
            location += f":{line_range['start']}" + (f"-{end}" if end and end != line_range["start"] else "")
        table.add_row(
            str(hotspot["riskScore"]),
            Text(f"{_RISK_ICON.get(level, '•')} {level}", style=_SEVERITY_STYLE.get(level, "")),
            str(hotspot["kind"]),
            location,
            str(hotspot["issueCount"]),
            ", ".join(hotspot.get("toolCoverage") or []) or "-",
        )
    console.print(table)

    for hotspot in hotspots:
        actions = hotspot.get("recommendedActions") or []
        if not actions:
            continue
        console.print(Text(str(hotspot["canonicalPath"]), style="bold"))
        for action in actions:
            console.print(f"  → {action}", style="dim")
    console.print()


def _print_summary(report: Mapping[str, Any], *, console: Console) -> None:
    summary = report["summary"]
    console.print(Text("─" * 60, style="dim"))

    counts = Text("Severity: ")
    by_severity = summary.get("bySeverity") or {}
    for idx, severity in enumerate(SEVERITIES):
        if idx:
            counts.append("  ")
        counts.append(f"{severity}={by_severity.get(severity, 0)}", style=_SEVERITY_STYLE[severity])
    console.print(counts)

    tools = summary.get("toolsCovered") or []
    console.print(Text(f"Tools: {', '.join(tools) if tools else '-'}", style="dim"))
    console.print(
        Text(
            f"Correlation groups: {summary['correlationGroups']}  Hotspots: {summary['hotspots']}",
            style="dim",
        )
    )

    dedup = summary.get("deduplication")
    if dedup:
        console.print(
            Text(
                f"Deduplication: {dedup['originalCount']} → {dedup['deduplicatedCount']} "
                f"({dedup['duplicatesRemoved']} duplicates in {dedup['groupsFound']} groups)",
                style="dim",
            )
        )

    validation = summary.get("validation") or {}
    if validation.get("rejected") or validation.get("excluded"):
        console.print(
            Text(
                f"Dropped: {validation.get('rejected', 0)} invalid, {validation.get('excluded', 0)} out of scope",
                style="yellow",
            )
        )
    exhausted = summary.get("resourceExhausted")
    if exhausted:
        console.print(Text(f"Resource limit reached: {exhausted['limit']}={exhausted['value']}", style="bold yellow"))

    failures = (report.get("metadata") or {}).get("adapterFailures") or []
    for failure in failures:
        console.print(Text(f"Adapter {failure['tool']} failed: {failure['error']}", style="yellow"))
    console.print(Text("─" * 60, style="dim"))
