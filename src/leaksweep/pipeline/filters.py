"""Secondary keyword filter and repository-level deduplication.

A primary leak keyword often matches ordinary code. The secondary pass asks
whether the same repository also contains any curated security keyword. A
single hit marks the whole repository as noise: every unprocessed finding it
has is ignored in one bulk update, and the new findings are dropped. This
repository-wide suppression trades recall for precision.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from leaksweep.models import Finding
from leaksweep.search.base import SearchError
from leaksweep.search.client import SearchClient
from leaksweep.store.base import ResultStore, StoreError

logger = logging.getLogger(__name__)


class Verdict(Enum):
    """Outcome of the secondary filter for a repository."""

    KEEP = "keep"
    SUPPRESS = "suppress"


@dataclass(frozen=True)
class FilterDecision:
    """Verdict plus the security keyword that triggered suppression."""

    verdict: Verdict
    keyword: str | None = None
    keywords_checked: int = 0

    @property
    def suppressed(self) -> bool:
        return self.verdict == Verdict.SUPPRESS


@dataclass
class CommitResult:
    """What committing a decision wrote to the store."""

    inserted: list[Finding] = field(default_factory=list)
    store_failures: int = 0


class DeduplicationFilter:
    """Bulk-ignores the findings of a repository flagged as noise."""

    def __init__(self, store: ResultStore) -> None:
        self.store = store

    def ignore_all(self, repository: str) -> int:
        """Ignore every unprocessed finding of ``repository``.

        Idempotent: a second call changes nothing and returns 0.

        Raises:
            StoreError: If the bulk update fails.
        """
        changed = self.store.ignore_all_for_repository(repository)
        logger.info("Ignored %d finding(s) for %s", changed, repository)
        return changed


class SecondaryKeywordFilter:
    """Decides whether a repository's primary hits are worth keeping.

    Example:
        filter_ = SecondaryKeywordFilter(client, DeduplicationFilter(store), store)
        decision = filter_.apply("acme/api", ["password", "secret"], findings)
    """

    def __init__(
        self,
        client: SearchClient,
        deduplication: DeduplicationFilter,
        store: ResultStore,
    ) -> None:
        self.client = client
        self.deduplication = deduplication
        self.store = store

    def decide(self, repository: str, security_keywords: Sequence[str]) -> FilterDecision:
        """Check security keywords in order and stop at the first hit.

        A failed lookup counts as no hit for that keyword; the remaining
        keywords are still checked.
        """
        checked = 0
        for keyword in security_keywords:
            checked += 1
            try:
                total = self.client.count(repository, keyword)
            except SearchError as e:
                logger.warning(
                    "Security keyword '%s' lookup failed for %s, treating as no hit: %s",
                    keyword,
                    repository,
                    e,
                )
                continue
            if total > 0:
                logger.info(
                    "%s matched security keyword '%s' (%d hits), suppressing",
                    repository,
                    keyword,
                    total,
                )
                return FilterDecision(Verdict.SUPPRESS, keyword, checked)
        return FilterDecision(Verdict.KEEP, None, checked)

    def commit(
        self,
        repository: str,
        decision: FilterDecision,
        findings: Iterable[Finding] = (),
    ) -> CommitResult:
        """Apply the side effects of a decision.

        SUPPRESS ignores every earlier finding of the repository and drops
        ``findings``. KEEP inserts each finding as unprocessed. Store errors
        are logged and counted, never raised.
        """
        result = CommitResult()
        if decision.suppressed:
            try:
                self.deduplication.ignore_all(repository)
            except StoreError as e:
                logger.error("Could not ignore findings for %s: %s", repository, e)
                result.store_failures += 1
            return result

        try:
            with self.store.batch():
                for finding in findings:
                    try:
                        result.inserted.append(self.store.insert(finding))
                    except StoreError as e:
                        logger.error(
                            "Could not store finding %s in %s: %s", finding.path, repository, e
                        )
                        result.store_failures += 1
        except StoreError as e:
            # The flush failed, so none of the batched inserts were kept
            logger.error("Could not store findings for %s: %s", repository, e)
            result.store_failures += len(result.inserted)
            result.inserted = []
        return result

    def apply(
        self,
        repository: str,
        security_keywords: Sequence[str],
        findings: Iterable[Finding] = (),
    ) -> FilterDecision:
        """Decide for ``repository`` and commit the result."""
        decision = self.decide(repository, security_keywords)
        self.commit(repository, decision, findings)
        return decision
