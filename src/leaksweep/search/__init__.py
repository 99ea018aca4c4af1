"""Code search backends for multiple providers."""

from __future__ import annotations

from enum import Enum

from leaksweep.search.base import (
    ProviderQueryRejectedError,
    ProviderUnavailableError,
    SearchError,
    SearchPage,
    SearchProvider,
)
from leaksweep.search.client import SearchClient


class SearchBackend(Enum):
    """Supported search providers."""

    GITHUB = "github"
    GITLAB = "gitlab"


def get_search_provider(backend: SearchBackend | str, **config) -> SearchProvider:
    """Factory to create a search provider.

    Args:
        backend: The provider to use
        **config: Provider-specific configuration (token, url, per_page, timeout)

    Returns:
        Configured SearchProvider instance

    Raises:
        ValueError: If the provider is not supported
    """
    if isinstance(backend, str):
        backend = SearchBackend(backend.lower())

    if backend == SearchBackend.GITHUB:
        from leaksweep.search.github import GITHUB_API_URL, GitHubSearchProvider

        return GitHubSearchProvider(
            token=config.get("token"),
            api_url=config.get("url") or GITHUB_API_URL,
            per_page=config.get("per_page", 100),
            timeout=config.get("timeout", 20.0),
        )

    elif backend == SearchBackend.GITLAB:
        from leaksweep.search.gitlab import GITLAB_URL, GitLabSearchProvider

        return GitLabSearchProvider(
            token=config.get("token"),
            url=config.get("url") or GITLAB_URL,
            per_page=config.get("per_page", 100),
            timeout=config.get("timeout", 20.0),
        )

    raise ValueError(f"Unsupported search provider: {backend}")


__all__ = [
    "ProviderQueryRejectedError",
    "ProviderUnavailableError",
    "SearchBackend",
    "SearchClient",
    "SearchError",
    "SearchPage",
    "SearchProvider",
    "get_search_provider",
]
