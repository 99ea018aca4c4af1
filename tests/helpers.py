"""Test doubles shared across the test suite."""

from __future__ import annotations

import threading
from typing import Any

from leaksweep.models import NormalizedMatch, SearchQuery
from leaksweep.oracle.base import Oracle, OracleError
from leaksweep.search.base import SearchPage, SearchProvider
from leaksweep.search.normalizer import normalize_github_item


def github_item(
    repository: str,
    path: str,
    fragments: list[str] | None = None,
) -> dict[str, Any]:
    """A raw GitHub code search item."""
    item: dict[str, Any] = {
        "name": path.rsplit("/", 1)[-1],
        "path": path,
        "html_url": f"https://github.com/{repository}/blob/main/{path}",
        "repository": {
            "full_name": repository,
            "html_url": f"https://github.com/{repository}",
        },
    }
    if fragments is not None:
        item["text_matches"] = [{"fragment": f, "property": "content"} for f in fragments]
    return item


class FakeSearchProvider(SearchProvider):
    """Scriptable provider.

    Args:
        pages: (repository, keyword) -> {page token (None = first): SearchPage}
        counts: (repository, keyword) -> scoped total, or an exception to raise
        errors: (repository, keyword) -> exception raised by ``search``
    """

    def __init__(
        self,
        pages: dict[tuple[str | None, str], dict[str | None, SearchPage]] | None = None,
        counts: dict[tuple[str, str], int | Exception] | None = None,
        errors: dict[tuple[str | None, str], Exception] | None = None,
    ) -> None:
        self.pages = pages or {}
        self.counts = counts or {}
        self.errors = errors or {}
        self.search_calls: list[tuple[SearchQuery, str | None]] = []
        self.scoped_calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return "fake"

    def search(self, query: SearchQuery, page: str | None = None) -> SearchPage:
        with self._lock:
            self.search_calls.append((query, page))
        key = (query.repository, query.keyword)
        if key in self.errors:
            raise self.errors[key]
        return self.pages.get(key, {}).get(page, SearchPage())

    def search_scoped(self, repository: str, keyword: str) -> int:
        with self._lock:
            self.scoped_calls.append((repository, keyword))
        value = self.counts.get((repository, keyword), 0)
        if isinstance(value, Exception):
            raise value
        return value

    def normalize(self, item: dict[str, Any], query: SearchQuery) -> NormalizedMatch:
        return normalize_github_item(item)


class FakeOracle(Oracle):
    """Oracle answering from a content -> answer map.

    Content not in ``answers`` gets ``default``. Content in ``failing``
    raises OracleError.
    """

    def __init__(
        self,
        answers: dict[str, str] | None = None,
        default: str = "no",
        failing: set[str] | None = None,
    ) -> None:
        self.answers = answers or {}
        self.default = default
        self.failing = failing or set()
        self.calls: list[tuple[str, str]] = []

    @property
    def name(self) -> str:
        return "fake"

    def ask(self, system_prompt: str, content: str) -> str:
        self.calls.append((system_prompt, content))
        if content in self.failing:
            raise OracleError("oracle down")
        return self.answers.get(content, self.default)
