"""Background classification of unprocessed findings."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from leaksweep.models import Finding, FindingStatus
from leaksweep.oracle.base import Oracle, OracleError
from leaksweep.store.base import ResultStore, StoreError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a security operations engineer assisting with leak triage. "
    "Judge whether the content below contains sensitive information, including "
    "passwords, credentials, tokens, etc., that could be exploited. "
    "Just answer yes or no."
)

POSITIVE_ANSWER = "yes"


@dataclass
class ClassificationReport:
    """Counts for one classification sweep."""

    confirmed: int = 0
    ignored: int = 0
    oracle_failures: int = 0
    store_failures: int = 0
    unexpected_failures: int = 0
    changed_concurrently: int = 0
    skipped: int = 0
    cancelled: bool = False
    error: str | None = None

    @property
    def processed(self) -> int:
        return self.confirmed + self.ignored

    @property
    def failed(self) -> int:
        return self.oracle_failures + self.store_failures + self.unexpected_failures


def verdict_for(answer: str) -> FindingStatus:
    """Map an oracle answer to the new finding status."""
    if answer.strip().lower() == POSITIVE_ANSWER:
        return FindingStatus.CONFIRMED
    return FindingStatus.IGNORED


class ClassificationWorker:
    """Asks the oracle about each unprocessed finding and records the verdict.

    Only UNPROCESSED findings are read, so running the sweep twice makes no
    further changes. An oracle failure leaves the finding unprocessed for the
    next sweep; a store failure is logged and the sweep moves on. A verdict is
    only written while the finding is still unprocessed, so a repository
    suppressed mid-sweep keeps its ignored findings.
    """

    def __init__(
        self,
        store: ResultStore,
        oracle: Oracle,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.store = store
        self.oracle = oracle
        self.system_prompt = system_prompt

    def classify(self, finding: Finding, report: ClassificationReport) -> None:
        """Classify one finding, updating ``report``."""
        content = finding.evidence_text()
        try:
            answer = self.oracle.ask(self.system_prompt, content)
        except OracleError as e:
            logger.error("Oracle failed for finding %s: %s", finding.id, e)
            report.oracle_failures += 1
            return

        status = verdict_for(answer)
        logger.info(
            "Finding %s (%s/%s): oracle said %r -> %s",
            finding.id,
            finding.repository,
            finding.path,
            answer,
            status.label,
        )
        try:
            updated = self.store.set_status(
                finding.id, status, expected=FindingStatus.UNPROCESSED
            )
        except StoreError as e:
            logger.error("Could not update finding %s: %s", finding.id, e)
            report.store_failures += 1
            return
        if not updated:
            logger.info("Finding %s was triaged elsewhere, verdict dropped", finding.id)
            report.changed_concurrently += 1
            return

        if status == FindingStatus.CONFIRMED:
            report.confirmed += 1
        else:
            report.ignored += 1

    def classify_sweep(
        self, cancel_event: threading.Event | None = None
    ) -> ClassificationReport:
        """Classify every unprocessed finding.

        Args:
            cancel_event: Checked between findings; when set, the remaining
                findings are counted as skipped.

        Raises:
            StoreError: If the unprocessed findings cannot be listed.
        """
        report = ClassificationReport()
        findings = self.store.list_unprocessed()
        logger.info("Classifying %d unprocessed finding(s)", len(findings))

        for index, finding in enumerate(findings):
            if cancel_event is not None and cancel_event.is_set():
                report.cancelled = True
                report.skipped = len(findings) - index
                logger.warning("Classification sweep cancelled, %d left", report.skipped)
                break
            try:
                self.classify(finding, report)
            except Exception:
                logger.exception("Unexpected error classifying finding %s", finding.id)
                report.unexpected_failures += 1

        return report
