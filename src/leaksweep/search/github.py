"""GitHub code search provider."""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import parse_qs, urlparse

import requests

from leaksweep.models import NormalizedMatch, SearchQuery
from leaksweep.search.base import SearchPage, SearchProvider
from leaksweep.search.http import DEFAULT_TIMEOUT, get_json, make_session
from leaksweep.search.normalizer import normalize_github_item
from leaksweep.search.query import build_query

GITHUB_API_URL = "https://api.github.com"

# Returns text_matches (highlighted fragments) with each item
TEXT_MATCH_MEDIA_TYPE = "application/vnd.github.text-match+json"

# GitHub caps per_page for code search at 100
MAX_PER_PAGE = 100


def next_page_from_links(response: requests.Response) -> str | None:
    """Extract the page number of the ``rel="next"`` link, if any."""
    next_link = response.links.get("next", {}).get("url")
    if not next_link:
        return None
    pages = parse_qs(urlparse(next_link).query).get("page")
    return pages[0] if pages else None


class GitHubSearchProvider(SearchProvider):
    """GitHub (or GitHub Enterprise) ``/search/code`` backend.

    Authentication uses a personal access token, passed explicitly or read
    from the GITHUB_TOKEN environment variable. Code search requires one.
    """

    def __init__(
        self,
        token: str | None = None,
        api_url: str = GITHUB_API_URL,
        per_page: int = MAX_PER_PAGE,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.api_url = api_url.rstrip("/")
        self.per_page = max(1, min(per_page, MAX_PER_PAGE))
        self.timeout = timeout

        headers = {"Accept": TEXT_MATCH_MEDIA_TYPE}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        if session is None:
            session = make_session(headers)
        else:
            session.headers.update(headers)
        self._session = session

    @property
    def name(self) -> str:
        return "github"

    def build_query(self, query: SearchQuery) -> str:
        """Render a SearchQuery in GitHub's search grammar."""
        return build_query(query.keyword, query.extension, query.repository)

    def search(self, query: SearchQuery, page: str | None = None) -> SearchPage:
        """Fetch one page of ``/search/code`` results."""
        params: dict[str, Any] = {
            "q": self.build_query(query),
            "per_page": self.per_page,
            "page": page or "1",
        }
        data, response = get_json(
            self._session,
            f"{self.api_url}/search/code",
            params=params,
            timeout=self.timeout,
        )
        return SearchPage(
            items=list(data.get("items") or []),
            next_page=next_page_from_links(response),
            total_count=data.get("total_count"),
        )

    def search_scoped(self, repository: str, keyword: str) -> int:
        """Count hits for ``keyword`` in one repository."""
        params = {
            "q": build_query(keyword, repository=repository),
            "per_page": 1,
        }
        data, _ = get_json(
            self._session,
            f"{self.api_url}/search/code",
            params=params,
            timeout=self.timeout,
        )
        return int(data.get("total_count") or 0)

    def normalize(self, item: dict[str, Any], query: SearchQuery) -> NormalizedMatch:
        return normalize_github_item(item)
