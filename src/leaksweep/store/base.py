"""Abstract result store consumed by the pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager

from leaksweep.models import (
    FilterClass,
    Finding,
    FindingStatus,
    KeywordFilter,
    RepositoryStatus,
    TrackedRepository,
)


class StoreError(Exception):
    """Base exception for persistence failures."""

    pass


class FindingNotFoundError(StoreError):
    """No finding with the given id."""

    pass


class FilterListUnavailableError(StoreError):
    """Keyword filters could not be loaded."""

    pass


class ResultStore(ABC):
    """Narrow persistence interface for findings, repositories and filters.

    Implementations must be safe for concurrent use by several sweeps.
    ``insert`` must be idempotent on ``Finding.natural_key``: an existing
    record is returned unchanged, so a later search pass never resets a
    triaged status.
    """

    @abstractmethod
    def insert(self, finding: Finding) -> Finding:
        """Persist a finding and return the stored record (with its id).

        Raises:
            StoreError: If the write fails
        """
        ...

    @abstractmethod
    def set_status(
        self,
        finding_id: int,
        status: FindingStatus,
        expected: FindingStatus | None = None,
    ) -> bool:
        """Set the status of one finding.

        Args:
            finding_id: Finding to update
            status: New status
            expected: When given, only update if the current status is this one

        Returns:
            False if ``expected`` did not match and nothing was written

        Raises:
            FindingNotFoundError: If the id is unknown
            StoreError: If the write fails
        """
        ...

    @abstractmethod
    def ignore_all_for_repository(self, repository: str) -> int:
        """Move every unprocessed finding of ``repository`` to IGNORED.

        Returns:
            Number of findings changed (0 when already ignored)
        """
        ...

    @abstractmethod
    def list_findings(
        self,
        status: FindingStatus | None = None,
        repository: str | None = None,
    ) -> list[Finding]:
        """List findings, optionally filtered, ordered by id."""
        ...

    @abstractmethod
    def add_repository(self, repository: TrackedRepository) -> TrackedRepository:
        """Track a repository; an existing entry is returned unchanged."""
        ...

    @abstractmethod
    def list_repositories(
        self, status: RepositoryStatus | None = None
    ) -> list[TrackedRepository]:
        """List tracked repositories, optionally by status."""
        ...

    @abstractmethod
    def set_repository_status(self, identity: str, status: RepositoryStatus) -> None:
        """Record the secondary-filter outcome for a repository."""
        ...

    @abstractmethod
    def add_keyword_filter(self, keyword_filter: KeywordFilter) -> None:
        """Store a keyword filter."""
        ...

    @abstractmethod
    def load_keyword_filters(self, filter_class: FilterClass) -> list[str]:
        """Load every keyword term of one filter class.

        Raises:
            FilterListUnavailableError: If the filters cannot be read
        """
        ...

    @contextmanager
    def batch(self) -> Iterator[ResultStore]:
        """Group several writes so a persistent store flushes them once.

        The default implementation writes through.
        """
        yield self

    def list_unprocessed(self) -> list[Finding]:
        """Findings still waiting for classification."""
        return self.list_findings(status=FindingStatus.UNPROCESSED)
