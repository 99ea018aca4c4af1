"""Paginating, retrying front end over a SearchProvider."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, TypeVar

from leaksweep.models import NormalizedMatch, SearchQuery
from leaksweep.search.base import ProviderUnavailableError, SearchProvider

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_PAGES = 10
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0


class SearchClient:
    """Runs full searches against one provider.

    Pages are fetched strictly in order: page N+1 is requested with the token
    returned by page N. A transient failure retries the current page with
    exponential backoff; once retries are exhausted the error propagates and
    the pages collected so far are discarded.

    Example:
        client = SearchClient(GitHubSearchProvider(token="..."))
        matches = client.search(SearchQuery("acme_secret", repository="acme/api"))
    """

    def __init__(
        self,
        provider: SearchProvider,
        max_pages: int = DEFAULT_MAX_PAGES,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            provider: Backend to query.
            max_pages: Upper bound on pages fetched per search.
            max_retries: Retries per page after a transient failure.
            backoff_base: First backoff delay in seconds, doubled per retry.
            sleep: Sleep function, replaceable in tests.
        """
        self.provider = provider
        self.max_pages = max(1, max_pages)
        self.max_retries = max(0, max_retries)
        self.backoff_base = backoff_base
        self._sleep = sleep

    def _with_retry(self, description: str, call: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return call()
            except ProviderUnavailableError as e:
                if attempt >= self.max_retries:
                    logger.warning(
                        "%s: giving up on %s after %d retries: %s",
                        self.provider.name,
                        description,
                        attempt,
                        e,
                    )
                    raise
                wait = self.backoff_base * (2**attempt)
                logger.info(
                    "%s: %s unavailable (%s), retrying in %.1fs",
                    self.provider.name,
                    description,
                    e,
                    wait,
                )
                self._sleep(wait)
                attempt += 1

    def search(self, query: SearchQuery) -> list[NormalizedMatch]:
        """Run ``query`` across all pages and normalize every item.

        Raises:
            ProviderUnavailableError: A page kept failing after all retries.
            ProviderQueryRejectedError: The provider rejected the query.
        """
        matches: list[NormalizedMatch] = []
        page: str | None = None

        for page_number in range(1, self.max_pages + 1):
            result = self._with_retry(
                f"page {page_number} of '{query.keyword}'",
                lambda: self.provider.search(query, page),
            )
            matches.extend(self.provider.normalize(item, query) for item in result.items)
            page = result.next_page
            if not page:
                break
        else:
            if page:
                logger.info(
                    "%s: stopped '%s' at the %d page limit",
                    self.provider.name,
                    query.keyword,
                    self.max_pages,
                )

        return matches

    def count(self, repository: str, keyword: str) -> int:
        """Total hits for ``keyword`` inside ``repository``."""
        return self._with_retry(
            f"scoped count of '{keyword}' in {repository}",
            lambda: self.provider.search_scoped(repository, keyword),
        )
