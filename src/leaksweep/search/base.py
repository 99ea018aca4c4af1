"""Abstract base class for code-search providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from leaksweep.models import NormalizedMatch, SearchQuery


class SearchError(Exception):
    """Base exception for search provider operations."""

    pass


class ProviderUnavailableError(SearchError):
    """Transient failure: network error, timeout, rate limit or 5xx."""

    pass


class ProviderQueryRejectedError(SearchError):
    """The provider refused the query itself. Retrying will not help."""

    pass


@dataclass
class SearchPage:
    """One page of raw provider results.

    Attributes:
        items: Raw result objects as returned by the provider.
        next_page: Token for the following page, or None when this is the last.
        total_count: Total hits reported by the provider, if known.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    next_page: str | None = None
    total_count: int | None = None


class SearchProvider(ABC):
    """Abstract interface for code-hosting search backends.

    Implementations must provide:
    - search: Fetch one page of results for a query
    - search_scoped: Count hits for a keyword inside one repository
    - normalize: Convert a raw result into a NormalizedMatch
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return provider identifier."""
        ...

    @abstractmethod
    def search(self, query: SearchQuery, page: str | None = None) -> SearchPage:
        """Fetch a single page of code search results.

        Args:
            query: The query to run
            page: Page token from the previous page, None for the first page

        Returns:
            SearchPage with raw items and the next page token

        Raises:
            ProviderUnavailableError: On transient failures
            ProviderQueryRejectedError: If the provider rejects the query
        """
        ...

    @abstractmethod
    def search_scoped(self, repository: str, keyword: str) -> int:
        """Count hits for ``keyword`` restricted to ``repository``.

        Raises:
            ProviderUnavailableError: On transient failures
            ProviderQueryRejectedError: If the provider rejects the query
        """
        ...

    @abstractmethod
    def normalize(self, item: dict[str, Any], query: SearchQuery) -> NormalizedMatch:
        """Convert one raw result item into a NormalizedMatch."""
        ...
