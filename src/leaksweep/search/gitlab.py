"""GitLab blob search provider."""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import quote

import requests

from leaksweep.models import NormalizedMatch, SearchQuery, TrackedRepository
from leaksweep.search.base import SearchPage, SearchProvider
from leaksweep.search.http import DEFAULT_TIMEOUT, get_json, make_session
from leaksweep.search.normalizer import normalize_gitlab_blob
from leaksweep.search.query import build_query

GITLAB_URL = "https://gitlab.com"

MAX_PER_PAGE = 100


def next_page_from_headers(response: requests.Response) -> str | None:
    """GitLab sends the next page in ``X-Next-Page``; empty or 0 means done."""
    value = (response.headers.get("X-Next-Page") or "").strip()
    if not value or value == "0":
        return None
    return value


def total_from_headers(response: requests.Response, fallback: int) -> int:
    """Total hits from ``X-Total``, omitted by GitLab for very large sets."""
    value = (response.headers.get("X-Total") or "").strip()
    try:
        return int(value)
    except ValueError:
        return fallback


def project_ref(repository: str) -> str:
    """Project path or numeric id, encoded for use in an API path."""
    return quote(repository, safe="")


class GitLabSearchProvider(SearchProvider):
    """GitLab (SaaS or self-managed) blob search backend.

    Repository-scoped queries use the project search endpoint, so the scope
    travels in the URL instead of the query string. Queries without a
    repository fall back to instance-wide blob search.
    """

    def __init__(
        self,
        token: str | None = None,
        url: str = GITLAB_URL,
        per_page: int = MAX_PER_PAGE,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.token = token or os.environ.get("GITLAB_TOKEN")
        self.url = url.rstrip("/")
        self.api_url = f"{self.url}/api/v4"
        self.per_page = max(1, min(per_page, MAX_PER_PAGE))
        self.timeout = timeout

        headers = {}
        if self.token:
            headers["PRIVATE-TOKEN"] = self.token
        if session is None:
            session = make_session(headers)
        else:
            session.headers.update(headers)
        self._session = session

    @property
    def name(self) -> str:
        return "gitlab"

    def _search_url(self, repository: str | None) -> str:
        if repository:
            return f"{self.api_url}/projects/{project_ref(repository)}/search"
        return f"{self.api_url}/search"

    def search(self, query: SearchQuery, page: str | None = None) -> SearchPage:
        """Fetch one page of blob results."""
        params: dict[str, Any] = {
            "scope": "blobs",
            "search": build_query(query.keyword, query.extension),
            "per_page": self.per_page,
            "page": page or "1",
        }
        data, response = get_json(
            self._session,
            self._search_url(query.repository),
            params=params,
            timeout=self.timeout,
        )
        items = list(data or [])
        return SearchPage(
            items=items,
            next_page=next_page_from_headers(response),
            total_count=total_from_headers(response, len(items)),
        )

    def search_scoped(self, repository: str, keyword: str) -> int:
        """Count blob hits for ``keyword`` in one project."""
        params = {
            "scope": "blobs",
            "search": build_query(keyword),
            "per_page": 1,
        }
        data, response = get_json(
            self._session,
            self._search_url(repository),
            params=params,
            timeout=self.timeout,
        )
        return total_from_headers(response, len(data or []))

    def normalize(self, item: dict[str, Any], query: SearchQuery) -> NormalizedMatch:
        repository = query.repository or str(item.get("project_id") or "")
        web_url = f"{self.url}/{repository}" if query.repository else ""
        return normalize_gitlab_blob(item, repository, web_url)

    def list_projects(self, group: str | None = None) -> list[TrackedRepository]:
        """List projects visible to the token, following every page.

        Args:
            group: Restrict to a group (path or id), including subgroups.

        Returns:
            Pending TrackedRepository entries, one per project.
        """
        if group:
            url = f"{self.api_url}/groups/{project_ref(group)}/projects"
            params: dict[str, Any] = {"include_subgroups": "true"}
        else:
            url = f"{self.api_url}/projects"
            params = {"membership": "true"}
        params["per_page"] = self.per_page

        repositories: list[TrackedRepository] = []
        page: str | None = "1"
        while page:
            params["page"] = page
            data, response = get_json(self._session, url, params=params, timeout=self.timeout)
            for project in data or []:
                identity = project.get("path_with_namespace")
                if not identity:
                    continue
                repositories.append(
                    TrackedRepository(
                        identity=identity,
                        url=project.get("web_url") or f"{self.url}/{identity}",
                        provider=self.name,
                    )
                )
            page = next_page_from_headers(response)
        return repositories
