"""Thread-safe in-memory result store."""

from __future__ import annotations

import copy
import threading
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
from leaksweep.store.base import FindingNotFoundError, ResultStore, StoreError


class InMemoryResultStore(ResultStore):
    """ResultStore kept in process memory.

    All operations hold one lock, so concurrent inserts and bulk ignores on
    the same repository never lose a record. Returned objects are copies.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._findings: dict[int, Finding] = {}
        self._keys: dict[tuple[str, str, str, str], int] = {}
        self._repositories: dict[str, TrackedRepository] = {}
        self._filters: list[KeywordFilter] = []
        self._next_id = 1
        self._batch_depth = 0
        self._dirty = False

    def _changed(self) -> None:
        """Hook called after every write (or once per batch), with the lock held.

        Raising StoreError here is allowed; subclasses that persist must then
        leave the in-memory state as it was before the failed write.
        """

    def _touch(self) -> None:
        if self._batch_depth:
            self._dirty = True
        else:
            self._changed()

    @contextmanager
    def batch(self) -> Iterator[InMemoryResultStore]:
        """Hold the lock and defer ``_changed`` until the outermost batch ends."""
        with self._lock:
            self._batch_depth += 1
            try:
                yield self
            finally:
                self._batch_depth -= 1
                if not self._batch_depth and self._dirty:
                    self._dirty = False
                    self._changed()

    def insert(self, finding: Finding) -> Finding:
        with self._lock:
            existing_id = self._keys.get(finding.natural_key)
            if existing_id is not None:
                return copy.deepcopy(self._findings[existing_id])

            stored = copy.deepcopy(finding)
            stored.id = self._next_id
            self._next_id += 1
            self._findings[stored.id] = stored
            self._keys[stored.natural_key] = stored.id
            self._touch()
            return copy.deepcopy(stored)

    def set_status(
        self,
        finding_id: int,
        status: FindingStatus,
        expected: FindingStatus | None = None,
    ) -> bool:
        with self._lock:
            finding = self._findings.get(finding_id)
            if finding is None:
                raise FindingNotFoundError(f"Finding {finding_id} not found")
            if expected is not None and finding.status != expected:
                return False
            if finding.status != status:
                finding.status = status
                self._touch()
            return True

    def ignore_all_for_repository(self, repository: str) -> int:
        with self._lock:
            changed = 0
            for finding in self._findings.values():
                if (
                    finding.repository == repository
                    and finding.status == FindingStatus.UNPROCESSED
                ):
                    finding.status = FindingStatus.IGNORED
                    changed += 1
            if changed:
                self._touch()
            return changed

    def list_findings(
        self,
        status: FindingStatus | None = None,
        repository: str | None = None,
    ) -> list[Finding]:
        with self._lock:
            return [
                copy.deepcopy(f)
                for _, f in sorted(self._findings.items())
                if (status is None or f.status == status)
                and (repository is None or f.repository == repository)
            ]

    def add_repository(self, repository: TrackedRepository) -> TrackedRepository:
        with self._lock:
            existing = self._repositories.get(repository.identity)
            if existing is None:
                existing = copy.deepcopy(repository)
                self._repositories[repository.identity] = existing
                self._touch()
            return copy.deepcopy(existing)

    def list_repositories(
        self, status: RepositoryStatus | None = None
    ) -> list[TrackedRepository]:
        with self._lock:
            return [
                copy.deepcopy(r)
                for r in self._repositories.values()
                if status is None or r.status == status
            ]

    def set_repository_status(self, identity: str, status: RepositoryStatus) -> None:
        with self._lock:
            repository = self._repositories.get(identity)
            if repository is None:
                raise StoreError(f"Repository {identity} is not tracked")
            if repository.status != status:
                repository.status = status
                self._touch()

    def add_keyword_filter(self, keyword_filter: KeywordFilter) -> None:
        with self._lock:
            self._filters.append(copy.deepcopy(keyword_filter))
            self._touch()

    def load_keyword_filters(self, filter_class: FilterClass) -> list[str]:
        with self._lock:
            terms: list[str] = []
            for keyword_filter in self._filters:
                if keyword_filter.filter_class == filter_class:
                    terms.extend(keyword_filter.terms())
            return terms
