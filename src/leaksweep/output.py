"""Rendering of sweep reports and findings for the CLI."""

from __future__ import annotations

import json
from dataclasses import asdict

from rich.console import Console
from rich.table import Table

from leaksweep.models import Finding, FindingStatus, SweepReport, TrackedRepository
from leaksweep.pipeline.classifier import ClassificationReport

console = Console()

STATUS_STYLES = {
    FindingStatus.UNPROCESSED: "yellow",
    FindingStatus.CONFIRMED: "bold red",
    FindingStatus.IGNORED: "dim",
}


def format_search_report(report: SweepReport, console: Console) -> None:
    """Print a search sweep summary."""
    if report.error:
        console.print(f"[red]Search sweep failed:[/red] {report.error}")
    table = Table(title="Search sweep", show_header=False)
    table.add_row("Pairs processed", str(report.processed))
    table.add_row("Pairs skipped", str(report.skipped))
    table.add_row("Pairs failed", str(report.failed))
    table.add_row("Findings stored", str(report.findings_inserted))
    table.add_row("Store failures", str(report.store_failures))
    table.add_row("Repositories suppressed", str(len(report.suppressed_repositories)))
    console.print(table)
    if report.cancelled:
        console.print("[yellow]Sweep was cancelled before finishing.[/yellow]")


def format_classification_report(report: ClassificationReport, console: Console) -> None:
    """Print a classification sweep summary."""
    if report.error:
        console.print(f"[red]Classification sweep failed:[/red] {report.error}")
    table = Table(title="Classification sweep", show_header=False)
    table.add_row("Confirmed sensitive", f"[bold red]{report.confirmed}[/bold red]")
    table.add_row("Ignored", str(report.ignored))
    table.add_row("Oracle failures", str(report.oracle_failures))
    table.add_row("Store failures", str(report.store_failures))
    table.add_row("Skipped", str(report.skipped))
    console.print(table)


def format_findings_rich(findings: list[Finding], console: Console) -> None:
    """Print findings as a table."""
    if not findings:
        console.print("[green]No findings.[/green]")
        return
    table = Table(title=f"Findings ({len(findings)})")
    table.add_column("ID", justify="right")
    table.add_column("Status")
    table.add_column("Repository")
    table.add_column("Keyword")
    table.add_column("Path")
    table.add_column("Match", overflow="fold")
    for finding in findings:
        style = STATUS_STYLES[finding.status]
        table.add_row(
            str(finding.id),
            f"[{style}]{finding.status.label}[/{style}]",
            finding.repository,
            finding.keyword,
            finding.path,
            finding.matches,
        )
    console.print(table)


def format_findings_json(findings: list[Finding]) -> str:
    """Findings as a JSON document."""
    return json.dumps([f.to_dict() for f in findings], indent=2, ensure_ascii=False)


def format_repositories_rich(repositories: list[TrackedRepository], console: Console) -> None:
    """Print tracked repositories as a table."""
    if not repositories:
        console.print("[yellow]No tracked repositories.[/yellow]")
        return
    table = Table(title=f"Tracked repositories ({len(repositories)})")
    table.add_column("Repository")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("URL")
    for repository in repositories:
        table.add_row(
            repository.identity,
            repository.provider,
            repository.status.value,
            repository.url,
        )
    console.print(table)


def format_report_json(report: SweepReport | ClassificationReport) -> str:
    """Sweep report as a JSON document."""
    return json.dumps(asdict(report), indent=2)
