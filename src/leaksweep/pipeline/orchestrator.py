"""Pipeline orchestrator - drives the search and classification sweeps.

The orchestrator is responsible for:
- Guarding each sweep so only one run of it is active at a time
- Fanning (repository, keyword) pairs out to a bounded worker pool
- Routing matches through the secondary keyword filter
- Reporting processed / skipped / failed counts when a sweep ends
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum

from leaksweep.models import (
    FilterClass,
    Finding,
    RepositoryStatus,
    SearchQuery,
    SweepReport,
    TrackedRepository,
)
from leaksweep.oracle.base import Oracle
from leaksweep.pipeline.classifier import ClassificationReport, ClassificationWorker
from leaksweep.pipeline.filters import (
    DeduplicationFilter,
    FilterDecision,
    SecondaryKeywordFilter,
)
from leaksweep.search.base import ProviderQueryRejectedError, SearchError
from leaksweep.search.client import SearchClient
from leaksweep.store.base import FilterListUnavailableError, ResultStore, StoreError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class SweepStatus(Enum):
    """Coarse status of a sweep, for observers."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class SweepState:
    """Owned, lock-guarded status of one kind of sweep.

    ``try_start`` is an atomic compare-and-set from any non-running state
    to RUNNING. Observers only read ``status`` and ``last_report``.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._status = SweepStatus.IDLE
        self._last_report: SweepReport | ClassificationReport | None = None
        self.cancel_event = threading.Event()

    @property
    def status(self) -> SweepStatus:
        with self._lock:
            return self._status

    @property
    def last_report(self) -> SweepReport | ClassificationReport | None:
        with self._lock:
            return self._last_report

    def try_start(self) -> bool:
        """Move to RUNNING unless already running."""
        with self._lock:
            if self._status == SweepStatus.RUNNING:
                return False
            self._status = SweepStatus.RUNNING
            self.cancel_event.clear()
            return True

    def finish(
        self,
        report: SweepReport | ClassificationReport | None,
        failed: bool = False,
    ) -> None:
        with self._lock:
            self._status = SweepStatus.FAILED if failed else SweepStatus.DONE
            self._last_report = report


class PairOutcome(Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class PairResult:
    """Result of one (repository, keyword) unit of work."""

    outcome: PairOutcome
    inserted: int = 0
    store_failures: int = 0


@dataclass
class RepositoryRun:
    """Per-sweep state for one repository, shared by its keyword pairs."""

    repository: TrackedRepository
    lock: threading.Lock = field(default_factory=threading.Lock)
    decision: FilterDecision | None = None
    incomplete: bool = False


class PipelineOrchestrator:
    """Drives the search sweep and the classification sweep.

    Both sweeps can run synchronously (``run_*``) or be submitted to a
    background executor (``trigger_*``), which returns a Future or None when
    that sweep is already running. Scheduling is left to the caller.

    Example:
        orchestrator = PipelineOrchestrator(store, SearchClient(provider), oracle)
        future = orchestrator.trigger_search_sweep()
        report = future.result()
    """

    def __init__(
        self,
        store: ResultStore,
        client: SearchClient,
        oracle: Oracle | None = None,
        extension: str | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            store: Result store shared by both sweeps.
            client: Search client for the configured provider.
            oracle: Oracle for the classification sweep (optional for search-only use).
            extension: Restrict primary searches to one file extension.
            max_workers: Size of the pool processing (repository, keyword) pairs.
        """
        self.store = store
        self.client = client
        self.extension = extension
        self.max_workers = max(1, max_workers)

        self.deduplication = DeduplicationFilter(store)
        self.secondary_filter = SecondaryKeywordFilter(client, self.deduplication, store)
        self.classifier = ClassificationWorker(store, oracle) if oracle else None

        self.search_state = SweepState("search")
        self.classification_state = SweepState("classification")
        self._executor = ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="leaksweep-sweep"
        )

    def __enter__(self) -> PipelineOrchestrator:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def shutdown(self, wait: bool = True) -> None:
        """Stop the background executor."""
        self._executor.shutdown(wait=wait)

    def cancel(self) -> None:
        """Ask running sweeps to stop after their current unit of work."""
        for state in (self.search_state, self.classification_state):
            if state.status == SweepStatus.RUNNING:
                logger.warning("Cancelling %s sweep", state.name)
                state.cancel_event.set()

    # Search sweep

    def trigger_search_sweep(self) -> Future[SweepReport] | None:
        """Start a search sweep in the background.

        Returns:
            Future for the report, or None if a search sweep is already running.
        """
        if not self.search_state.try_start():
            logger.info("Search sweep already running, trigger ignored")
            return None
        return self._executor.submit(self._execute_search_sweep)

    def run_search_sweep(self) -> SweepReport | None:
        """Run a search sweep in the calling thread.

        Returns:
            The sweep report, or None if a search sweep is already running.
        """
        if not self.search_state.try_start():
            logger.info("Search sweep already running, run ignored")
            return None
        return self._execute_search_sweep()

    def _execute_search_sweep(self) -> SweepReport:
        report = SweepReport()
        try:
            self._search_sweep(report, self.search_state.cancel_event)
        except (FilterListUnavailableError, StoreError) as e:
            logger.error("Search sweep aborted: %s", e)
            report.error = str(e)
            self.search_state.finish(report, failed=True)
            return report
        except Exception as e:
            logger.exception("Search sweep crashed")
            report.error = f"Unexpected error: {e!s}"
            self.search_state.finish(report, failed=True)
            return report

        logger.info(
            "Search sweep done: %d processed, %d skipped, %d failed, %d finding(s) stored, "
            "%d repositories suppressed",
            report.processed,
            report.skipped,
            report.failed,
            report.findings_inserted,
            len(report.suppressed_repositories),
        )
        self.search_state.finish(report)
        return report

    def _load_security_keywords(self) -> tuple[str, ...]:
        try:
            return tuple(self.store.load_keyword_filters(FilterClass.SECURITY_KEYWORD))
        except FilterListUnavailableError:
            raise
        except StoreError as e:
            raise FilterListUnavailableError(f"Cannot load security keywords: {e}") from e

    def _search_sweep(self, report: SweepReport, cancel_event: threading.Event) -> None:
        repositories = self.store.list_repositories(RepositoryStatus.PENDING)
        keywords = self.store.load_keyword_filters(FilterClass.LEAK_KEYWORD)
        # Loaded once; the same list is used for every repository in this sweep
        security_keywords = self._load_security_keywords()

        logger.info(
            "Search sweep: %d repositories x %d keywords, %d security keywords",
            len(repositories),
            len(keywords),
            len(security_keywords),
        )
        runs = {repo.identity: RepositoryRun(repo) for repo in repositories}
        if not runs or not keywords:
            return

        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="leaksweep-pair"
        ) as pool:
            futures = {
                pool.submit(
                    self._process_pair, run, keyword, security_keywords, cancel_event
                ): (run, keyword)
                for run in runs.values()
                for keyword in keywords
            }
            for future in as_completed(futures):
                run, keyword = futures[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.exception(
                        "Pair %s / '%s' crashed", run.repository.identity, keyword
                    )
                    result = PairResult(PairOutcome.FAILED)
                    report.error = report.error or f"Unexpected error: {e!s}"

                if result.outcome == PairOutcome.PROCESSED:
                    report.processed += 1
                elif result.outcome == PairOutcome.SKIPPED:
                    report.skipped += 1
                else:
                    report.failed += 1
                report.findings_inserted += result.inserted
                report.store_failures += result.store_failures
                if result.outcome != PairOutcome.PROCESSED or result.store_failures:
                    run.incomplete = True

        report.cancelled = cancel_event.is_set()
        for run in runs.values():
            self._record_repository_outcome(run, report)

    def _process_pair(
        self,
        run: RepositoryRun,
        keyword: str,
        security_keywords: tuple[str, ...],
        cancel_event: threading.Event,
    ) -> PairResult:
        if cancel_event.is_set():
            return PairResult(PairOutcome.SKIPPED)

        repository = run.repository.identity
        query = SearchQuery(keyword=keyword, extension=self.extension, repository=repository)
        try:
            matches = self.client.search(query)
        except ProviderQueryRejectedError as e:
            logger.error("Query for '%s' in %s rejected, skipping: %s", keyword, repository, e)
            return PairResult(PairOutcome.FAILED)
        except SearchError as e:
            logger.warning("Search for '%s' in %s failed, skipping: %s", keyword, repository, e)
            return PairResult(PairOutcome.FAILED)

        if not matches:
            return PairResult(PairOutcome.PROCESSED)

        logger.info("'%s' matched %d file(s) in %s", keyword, len(matches), repository)
        with run.lock:
            if run.decision is None:
                run.decision = self.secondary_filter.decide(repository, security_keywords)
            decision = run.decision

        findings = [Finding.from_match(match, keyword) for match in matches]
        committed = self.secondary_filter.commit(repository, decision, findings)
        return PairResult(
            PairOutcome.PROCESSED,
            inserted=len(committed.inserted),
            store_failures=committed.store_failures,
        )

    def _record_repository_outcome(self, run: RepositoryRun, report: SweepReport) -> None:
        """Write the secondary-filter result back to the repository."""
        identity = run.repository.identity
        if run.decision is not None and run.decision.suppressed:
            status = RepositoryStatus.IGNORED
            report.suppressed_repositories.append(identity)
        elif run.incomplete:
            # Left pending so the next sweep retries the failed pairs
            return
        else:
            status = RepositoryStatus.ACCEPTED

        try:
            self.store.set_repository_status(identity, status)
        except StoreError as e:
            logger.error("Could not update repository %s: %s", identity, e)
            report.store_failures += 1

    # Classification sweep

    def _require_classifier(self) -> ClassificationWorker:
        if self.classifier is None:
            raise RuntimeError("No oracle configured; classification is unavailable")
        return self.classifier

    def trigger_classification_sweep(self) -> Future[ClassificationReport] | None:
        """Start a classification sweep in the background.

        Returns:
            Future for the report, or None if one is already running.
        """
        self._require_classifier()
        if not self.classification_state.try_start():
            logger.info("Classification sweep already running, trigger ignored")
            return None
        return self._executor.submit(self._execute_classification_sweep)

    def run_classification_sweep(self) -> ClassificationReport | None:
        """Run a classification sweep in the calling thread."""
        self._require_classifier()
        if not self.classification_state.try_start():
            logger.info("Classification sweep already running, run ignored")
            return None
        return self._execute_classification_sweep()

    def _execute_classification_sweep(self) -> ClassificationReport:
        classifier = self._require_classifier()
        try:
            report = classifier.classify_sweep(self.classification_state.cancel_event)
        except StoreError as e:
            logger.error("Classification sweep aborted: %s", e)
            report = ClassificationReport(error=str(e))
            self.classification_state.finish(report, failed=True)
            return report
        except Exception as e:
            logger.exception("Classification sweep crashed")
            report = ClassificationReport(error=f"Unexpected error: {e!s}")
            self.classification_state.finish(report, failed=True)
            return report

        logger.info(
            "Classification sweep done: %d confirmed, %d ignored, %d failed, %d skipped",
            report.confirmed,
            report.ignored,
            report.failed,
            report.skipped,
        )
        self.classification_state.finish(report)
        return report
