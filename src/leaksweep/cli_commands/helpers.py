"""Shared wiring for leaksweep CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from leaksweep.config import ConfigError, Credentials, LeakSweepConfig, load_config
from leaksweep.models import FilterClass, KeywordFilter
from leaksweep.oracle import Oracle, OracleError, get_oracle
from leaksweep.output import console
from leaksweep.search import SearchClient, SearchProvider, get_search_provider
from leaksweep.store import JsonFileResultStore, ResultStore, StoreError

logger = logging.getLogger(__name__)


def resolve_config(config_file: Path | None, provider: str | None = None) -> LeakSweepConfig:
    """Load configuration, exiting with an error message on failure."""
    try:
        config = load_config(config_file)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    if provider:
        config.search.provider = provider.lower()
    return config


def open_store(config: LeakSweepConfig, store_path: Path | None = None) -> JsonFileResultStore:
    """Open the JSON result store named by the config (or ``store_path``)."""
    try:
        return JsonFileResultStore(store_path or config.store_path)
    except StoreError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e


def seed_store(store: ResultStore, config: LeakSweepConfig) -> None:
    """Add keywords and repositories from the config that the store lacks.

    Existing repositories keep their status; keywords already stored are
    not duplicated.
    """
    for filter_class, terms in (
        (FilterClass.LEAK_KEYWORD, config.leak_keywords),
        (FilterClass.SECURITY_KEYWORD, config.security_keywords),
    ):
        known = set(store.load_keyword_filters(filter_class))
        missing = []
        for term in terms:
            if "," in term:
                # Stored filter content is comma-separated
                logger.warning(
                    "Skipping %s term %r: keywords cannot contain commas",
                    filter_class.value,
                    term,
                )
            elif term.strip() and term not in known:
                missing.append(term)
        if missing:
            store.add_keyword_filter(KeywordFilter(filter_class, ",".join(missing)))
            logger.debug("Seeded %d %s term(s)", len(missing), filter_class.value)

    for repository in config.repositories:
        store.add_repository(repository)


def build_provider(config: LeakSweepConfig, credentials: Credentials) -> SearchProvider:
    """Create the configured search provider."""
    provider = config.search.provider
    try:
        return get_search_provider(
            provider,
            token=credentials.token_for(provider),
            url=credentials.url_for(provider),
            per_page=config.search.per_page,
            timeout=config.search.timeout,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] Unknown search provider '{provider}'")
        raise typer.Exit(code=1) from e


def build_client(config: LeakSweepConfig, credentials: Credentials) -> SearchClient:
    """Create a search client around the configured provider."""
    return SearchClient(
        build_provider(config, credentials),
        max_pages=config.search.max_pages,
        max_retries=config.search.max_retries,
        backoff_base=config.search.backoff_base,
    )


def build_oracle(config: LeakSweepConfig, credentials: Credentials) -> Oracle:
    """Create the configured oracle, exiting if it cannot be set up."""
    try:
        return get_oracle(
            config.classify.oracle,
            api_key=credentials.openai_api_key,
            base_url=credentials.openai_base_url,
            model=config.classify.model,
            timeout=config.classify.timeout,
            max_retries=config.classify.max_retries,
        )
    except (OracleError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
