"""Result stores for findings, tracked repositories and keyword filters."""

from __future__ import annotations

from leaksweep.store.base import (
    FilterListUnavailableError,
    FindingNotFoundError,
    ResultStore,
    StoreError,
)
from leaksweep.store.json_file import JsonFileResultStore
from leaksweep.store.memory import InMemoryResultStore

__all__ = [
    "FilterListUnavailableError",
    "FindingNotFoundError",
    "InMemoryResultStore",
    "JsonFileResultStore",
    "ResultStore",
    "StoreError",
]
