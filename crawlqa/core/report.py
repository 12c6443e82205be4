"""Fold a finished run into a RunReport, and render or persist it."""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from crawlqa.models.types import CompletedWork, Defect, FailedWork, RunReport


SEVERITY_COLORS = {"high": "red bold", "medium": "yellow", "low": "cyan"}
SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}


def aggregate(
    base_url: str,
    ledger: Iterable[str],
    completed: Sequence[CompletedWork],
    failed: Sequence[FailedWork],
    defects: Sequence[Defect],
    started_at: datetime | None = None,
) -> RunReport:
    discovered = list(ledger)
    discovered_set = set(discovered)
    visited = {work.item.path for work in completed} & discovered_set

    coverage = 0.0
    if discovered_set:
        coverage = len(visited) * 100 / len(discovered_set)

    report = RunReport(
        base_url=base_url,
        total_completed=len(completed),
        total_discovered_routes=len(discovered_set),
        defect_count=len(defects),
        coverage_percent=coverage,
        discovered_routes=discovered,
        completed_work=list(completed),
        failed_work=list(failed),
        defects=list(defects),
        completed_at=datetime.now(),
    )
    if started_at is not None:
        report.started_at = started_at
    return report


def write_report(report: RunReport, path: str | Path) -> Path:
    """Persist the report as JSON and return the file path."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(report.to_dict(), indent=2), encoding="utf-8")
    return out


def print_report(report: RunReport, console: Console | None = None):
    """Print the run summary and defect table using Rich."""
    console = console or Console()

    duration = ""
    if report.completed_at:
        secs = (report.completed_at - report.started_at).total_seconds()
        duration = f" in {secs:.1f}s"

    header = Text()
    header.append("\n Crawl Test Report\n", style="bold")
    header.append(f" {report.base_url}\n", style="dim")
    header.append(f" {report.total_completed} tests completed{duration}\n", style="dim")
    console.print(Panel(header, border_style="blue"))

    coverage_color = (
        "green" if report.coverage_percent >= 80
        else "yellow" if report.coverage_percent >= 50
        else "red"
    )
    summary = Text()
    summary.append("  Coverage: ", style="bold")
    summary.append(f"{report.coverage_percent:.1f}%", style=f"bold {coverage_color}")
    summary.append(f"  ({report.total_discovered_routes} routes discovered)", style="dim")
    console.print()
    console.print(summary)
    console.print()

    if not report.defects:
        console.print("  [green bold]No defects found.[/green bold]\n")
        return

    by_severity = report.defects_by_severity()
    parts = []
    for sev in ("high", "medium", "low"):
        if sev in by_severity:
            color = SEVERITY_COLORS[sev]
            parts.append(f"[{color}]{len(by_severity[sev])} {sev}[/{color}]")
    console.print(f"  Defects found: {', '.join(parts)}\n")

    table = Table(show_header=True, header_style="bold", padding=(0, 1))
    table.add_column("Sev", width=6)
    table.add_column("Kind", width=14)
    table.add_column("Defect", min_width=40)
    table.add_column("Path", max_width=35)

    for defect in sorted(report.defects, key=lambda d: SEVERITY_ORDER[d.severity.value]):
        table.add_row(
            Text(defect.severity.value, style=SEVERITY_COLORS[defect.severity.value]),
            defect.kind.value,
            defect.description[:80],
            defect.path,
        )
    console.print(table)
    console.print()

    if report.failed_work:
        console.print(f"  [dim]Failed tests: {len(report.failed_work)}[/dim]")
        for work in report.failed_work[:5]:
            console.print(f"    [dim]• {work.item.id}: {work.reason[:120]}[/dim]")
        console.print()
