"""Inspection commands for stored findings and tracked repositories."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from leaksweep.cli_commands.helpers import (
    build_provider,
    open_store,
    resolve_config,
    seed_store,
)
from leaksweep.config import Credentials
from leaksweep.models import FindingStatus, RepositoryStatus
from leaksweep.output import (
    console,
    format_findings_json,
    format_findings_rich,
    format_repositories_rich,
)
from leaksweep.search.base import SearchError


def findings(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to leaksweep.toml"),
    ] = None,
    store_path: Annotated[
        Path | None,
        typer.Option("--store", help="Path to the JSON result store (overrides config)"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option("--status", "-s", help="Filter by status: unprocessed, confirmed, ignored"),
    ] = None,
    repository: Annotated[
        str | None,
        typer.Option("--repo", "-r", help="Only findings of this repository"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output findings as JSON"),
    ] = False,
) -> None:
    """List stored findings."""
    status_filter = None
    if status:
        try:
            status_filter = FindingStatus.from_label(status)
        except ValueError as e:
            console.print(
                f"[red]Error:[/red] Invalid status '{status}'. "
                "Valid options: unprocessed, confirmed, ignored"
            )
            raise typer.Exit(code=1) from e

    config = resolve_config(config_file)
    store = open_store(config, store_path)
    results = store.list_findings(status=status_filter, repository=repository)

    if json_output:
        print(format_findings_json(results))
    else:
        format_findings_rich(results, console)


def repos(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to leaksweep.toml"),
    ] = None,
    store_path: Annotated[
        Path | None,
        typer.Option("--store", help="Path to the JSON result store (overrides config)"),
    ] = None,
    discover: Annotated[
        bool,
        typer.Option("--discover", help="Track every project visible on GitLab"),
    ] = False,
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Limit discovery to a GitLab group"),
    ] = None,
    pending: Annotated[
        bool,
        typer.Option("--pending", help="Only list repositories not yet filtered"),
    ] = False,
) -> None:
    """List tracked repositories, optionally discovering them from GitLab."""
    config = resolve_config(config_file)
    store = open_store(config, store_path)
    seed_store(store, config)

    if discover:
        if config.search.provider != "gitlab":
            console.print("[red]Error:[/red] --discover requires provider = \"gitlab\"")
            raise typer.Exit(code=1)
        provider = build_provider(config, Credentials())
        try:
            projects = provider.list_projects(group=group)
        except SearchError as e:
            console.print(f"[red]Error:[/red] Project discovery failed: {e}")
            raise typer.Exit(code=1) from e
        for project in projects:
            store.add_repository(project)
        console.print(f"[green]Tracking {len(projects)} project(s).[/green]")

    status = RepositoryStatus.PENDING if pending else None
    format_repositories_rich(store.list_repositories(status), console)
