"""Sweep commands - run the search and classification pipelines.

Both commands read leaksweep.toml (auto-detected, or --config) and keep
their results in the JSON store it names:

    [store]
    path = ".leaksweep/results.json"
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from leaksweep.cli_commands.helpers import (
    build_client,
    build_oracle,
    open_store,
    resolve_config,
    seed_store,
)
from leaksweep.config import Credentials
from leaksweep.log import configure_logging
from leaksweep.output import (
    console,
    format_classification_report,
    format_report_json,
    format_search_report,
)
from leaksweep.pipeline.orchestrator import PipelineOrchestrator

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="Path to leaksweep.toml (auto-detected if not specified)",
    ),
]
StoreOption = Annotated[
    Path | None,
    typer.Option("--store", help="Path to the JSON result store (overrides config)"),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", "-j", help="Output the sweep report as JSON"),
]


def search(
    config_file: ConfigOption = None,
    store_path: StoreOption = None,
    provider: Annotated[
        str | None,
        typer.Option("--provider", "-p", help="Search provider: github, gitlab"),
    ] = None,
    workers: Annotated[
        int | None,
        typer.Option("--workers", "-w", help="Repository/keyword pairs searched in parallel"),
    ] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Search tracked repositories for leak keywords.

    Every pending repository is searched for every leak keyword. Repositories
    where a security keyword also matches are suppressed; other hits are
    stored as unprocessed findings.

    \b
    Exit codes:
      0 - Sweep finished (individual pairs may have been skipped)
      1 - Sweep could not run (config, store or keyword list unavailable)
    """
    configure_logging(verbose)
    config = resolve_config(config_file, provider)
    if workers is not None:
        config.search.max_workers = workers

    store = open_store(config, store_path)
    seed_store(store, config)
    client = build_client(config, Credentials())

    with PipelineOrchestrator(
        store,
        client,
        extension=config.search.extension,
        max_workers=config.search.max_workers,
    ) as orchestrator:
        report = orchestrator.run_search_sweep()

    if report is None:
        console.print("[yellow]A search sweep is already running.[/yellow]")
        return

    if json_output:
        print(format_report_json(report))
    else:
        format_search_report(report, console)

    if report.error:
        raise typer.Exit(code=1)


def classify(
    config_file: ConfigOption = None,
    store_path: StoreOption = None,
    model: Annotated[
        str | None,
        typer.Option("--model", "-m", help="Chat model used as the oracle"),
    ] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Classify unprocessed findings with the language-model oracle.

    Each finding's matched text is sent with a yes/no question. "yes"
    confirms the finding as sensitive; any other answer ignores it. Findings
    whose oracle call fails stay unprocessed for the next run.
    """
    configure_logging(verbose)
    config = resolve_config(config_file)
    if model:
        config.classify.model = model

    store = open_store(config, store_path)
    credentials = Credentials()
    oracle = build_oracle(config, credentials)
    client = build_client(config, credentials)

    with PipelineOrchestrator(store, client, oracle=oracle) as orchestrator:
        report = orchestrator.run_classification_sweep()

    if report is None:
        console.print("[yellow]A classification sweep is already running.[/yellow]")
        return

    if json_output:
        print(format_report_json(report))
    else:
        format_classification_report(report, console)

    if report.error:
        raise typer.Exit(code=1)
