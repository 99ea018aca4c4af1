"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from leaksweep.models import (
    FilterClass,
    Finding,
    KeywordFilter,
    StructuredFragments,
    TrackedRepository,
)
from leaksweep.search.client import SearchClient
from leaksweep.store.memory import InMemoryResultStore
from tests.helpers import FakeOracle, FakeSearchProvider


@pytest.fixture
def store():
    """Empty in-memory result store."""
    return InMemoryResultStore()


@pytest.fixture
def provider():
    """Fake provider with no results."""
    return FakeSearchProvider()


@pytest.fixture
def sleeps():
    """Delays requested by a SearchClient under test."""
    return []


@pytest.fixture
def client(provider, sleeps):
    """SearchClient over the fake provider that never really sleeps."""
    return SearchClient(provider, max_pages=5, max_retries=2, backoff_base=1.0, sleep=sleeps.append)


@pytest.fixture
def oracle():
    """Oracle answering "no" to everything."""
    return FakeOracle()


@pytest.fixture
def seeded_store(store):
    """Store tracking acme/api with leak and security keywords."""
    store.add_repository(TrackedRepository("acme/api", "https://github.com/acme/api"))
    store.add_keyword_filter(KeywordFilter(FilterClass.LEAK_KEYWORD, "baidu"))
    store.add_keyword_filter(KeywordFilter(FilterClass.SECURITY_KEYWORD, "password,secret"))
    return store


@pytest.fixture
def make_finding():
    """Factory for unprocessed findings."""

    def _make(
        repository: str = "acme/api",
        path: str = "config/settings.py",
        keyword: str = "baidu",
        fragments: tuple[str, ...] = ("baidu_secret_key = abc123",),
    ) -> Finding:
        return Finding(
            repository=repository,
            repository_url=f"https://github.com/{repository}",
            keyword=keyword,
            path=path,
            url=f"https://github.com/{repository}/blob/main/{path}",
            payload=StructuredFragments(fragments),
            matches=fragments[0] if fragments else "",
        )

    return _make
