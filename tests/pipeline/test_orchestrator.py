"""Tests for the pipeline orchestrator."""

from __future__ import annotations

import threading

import pytest

from leaksweep.models import (
    FilterClass,
    FindingStatus,
    KeywordFilter,
    RepositoryStatus,
    StructuredFragments,
    TrackedRepository,
)
from leaksweep.pipeline.orchestrator import PipelineOrchestrator, SweepState, SweepStatus
from leaksweep.search.base import ProviderQueryRejectedError, SearchPage
from leaksweep.search.client import SearchClient
from leaksweep.store.base import FilterListUnavailableError, StoreError
from leaksweep.store.memory import InMemoryResultStore
from tests.helpers import FakeOracle, FakeSearchProvider, github_item


def _one_page(repository: str, *hits: tuple[str, str]) -> dict[str | None, SearchPage]:
    return {None: SearchPage(items=[github_item(repository, p, [f]) for p, f in hits])}


def _orchestrator(store, provider, oracle=None, max_workers=4) -> PipelineOrchestrator:
    client = SearchClient(provider, max_retries=0, sleep=lambda _s: None)
    return PipelineOrchestrator(store, client, oracle=oracle, max_workers=max_workers)


class BlockingProvider(FakeSearchProvider):
    """Blocks every search until ``release`` is set."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.started = threading.Event()
        self.release = threading.Event()

    def search(self, query, page=None):
        self.started.set()
        assert self.release.wait(timeout=5)
        return super().search(query, page)


class TestSweepState:
    """Tests for SweepState."""

    def test_try_start_is_single_flight(self):
        state = SweepState("search")

        assert state.try_start() is True
        assert state.try_start() is False
        assert state.status == SweepStatus.RUNNING

    def test_restart_after_finish_clears_cancel(self):
        state = SweepState("search")
        state.try_start()
        state.cancel_event.set()
        state.finish(None, failed=True)

        assert state.status == SweepStatus.FAILED
        assert state.try_start() is True
        assert not state.cancel_event.is_set()


class TestSearchSweep:
    """Tests for the search sweep."""

    def test_leak_without_security_keyword_is_kept(self, seeded_store):
        provider = FakeSearchProvider(
            pages={
                ("acme/api", "baidu"): _one_page(
                    "acme/api", ("config/settings.py", "baidu_secret_key = abc123")
                )
            }
        )

        with _orchestrator(seeded_store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        (finding,) = seeded_store.list_findings()
        assert finding.repository == "acme/api"
        assert finding.keyword == "baidu"
        assert finding.status == FindingStatus.UNPROCESSED
        assert finding.payload == StructuredFragments(("baidu_secret_key = abc123",))
        assert report.processed == 1
        assert report.findings_inserted == 1
        assert report.suppressed_repositories == []
        (repository,) = seeded_store.list_repositories()
        assert repository.status == RepositoryStatus.ACCEPTED
        assert orchestrator.search_state.status == SweepStatus.DONE
        assert orchestrator.search_state.last_report is report

    def test_security_keyword_suppresses_repository(self, seeded_store, make_finding):
        earlier = seeded_store.insert(make_finding(path="old.py"))
        provider = FakeSearchProvider(
            pages={("acme/api", "baidu"): _one_page("acme/api", ("new.py", "baidu = 1"))},
            counts={("acme/api", "password"): 3},
        )

        with _orchestrator(seeded_store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        (finding,) = seeded_store.list_findings()
        assert finding.id == earlier.id
        assert finding.status == FindingStatus.IGNORED
        assert report.findings_inserted == 0
        assert report.suppressed_repositories == ["acme/api"]
        assert provider.scoped_calls == [("acme/api", "password")]
        assert seeded_store.list_repositories()[0].status == RepositoryStatus.IGNORED

    def test_secondary_decision_made_once_per_repository(self, seeded_store):
        seeded_store.add_keyword_filter(KeywordFilter(FilterClass.LEAK_KEYWORD, "acme_token"))
        provider = FakeSearchProvider(
            pages={
                ("acme/api", "baidu"): _one_page("acme/api", ("a.py", "baidu = 1")),
                ("acme/api", "acme_token"): _one_page("acme/api", ("b.py", "acme_token = 2")),
            }
        )

        with _orchestrator(seeded_store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        assert report.findings_inserted == 2
        assert provider.scoped_calls == [("acme/api", "password"), ("acme/api", "secret")]

    def test_no_matches_skips_secondary_filter(self, seeded_store):
        provider = FakeSearchProvider()

        with _orchestrator(seeded_store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        assert report.processed == 1
        assert provider.scoped_calls == []
        assert seeded_store.list_repositories()[0].status == RepositoryStatus.ACCEPTED

    def test_failed_pair_is_skipped_and_repository_stays_pending(self, seeded_store):
        seeded_store.add_keyword_filter(KeywordFilter(FilterClass.LEAK_KEYWORD, "acme_token"))
        provider = FakeSearchProvider(
            pages={("acme/api", "baidu"): _one_page("acme/api", ("a.py", "baidu = 1"))},
            errors={("acme/api", "acme_token"): ProviderQueryRejectedError("422")},
        )

        with _orchestrator(seeded_store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        assert report.processed == 1
        assert report.failed == 1
        assert report.findings_inserted == 1
        assert report.error is None
        assert seeded_store.list_repositories()[0].status == RepositoryStatus.PENDING

    def test_only_pending_repositories_searched(self, seeded_store):
        seeded_store.add_repository(TrackedRepository("acme/legacy"))
        seeded_store.set_repository_status("acme/legacy", RepositoryStatus.IGNORED)
        provider = FakeSearchProvider()

        with _orchestrator(seeded_store, provider) as orchestrator:
            orchestrator.run_search_sweep()

        assert {q.repository for q, _ in provider.search_calls} == {"acme/api"}

    def test_filter_list_unavailable_aborts(self, seeded_store):
        class BrokenFilters(InMemoryResultStore):
            def load_keyword_filters(self, filter_class):
                if filter_class == FilterClass.SECURITY_KEYWORD:
                    raise StoreError("filters table missing")
                return super().load_keyword_filters(filter_class)

        store = BrokenFilters()
        store.add_repository(TrackedRepository("acme/api"))
        store.add_keyword_filter(KeywordFilter(FilterClass.LEAK_KEYWORD, "baidu"))
        provider = FakeSearchProvider()

        with _orchestrator(store, provider) as orchestrator:
            report = orchestrator.run_search_sweep()

        assert "security keywords" in report.error
        assert orchestrator.search_state.status == SweepStatus.FAILED
        assert provider.search_calls == []

    def test_load_security_keywords_wraps_store_error(self):
        class BrokenFilters(InMemoryResultStore):
            def load_keyword_filters(self, filter_class):
                raise StoreError("boom")

        with _orchestrator(BrokenFilters(), FakeSearchProvider()) as orchestrator:
            with pytest.raises(FilterListUnavailableError):
                orchestrator._load_security_keywords()

    def test_cancel_skips_remaining_pairs(self, seeded_store):
        seeded_store.add_keyword_filter(KeywordFilter(FilterClass.LEAK_KEYWORD, "k2,k3"))
        orchestrator = _orchestrator(seeded_store, FakeSearchProvider(), max_workers=1)

        class CancellingProvider(FakeSearchProvider):
            def search(self, query, page=None):
                orchestrator.cancel()
                return super().search(query, page)

        orchestrator.client.provider = CancellingProvider()
        with orchestrator:
            report = orchestrator.run_search_sweep()

        assert report.cancelled is True
        assert report.processed == 1
        assert report.skipped == 2
        assert seeded_store.list_repositories()[0].status == RepositoryStatus.PENDING

    def test_single_flight(self, seeded_store):
        provider = BlockingProvider()

        with _orchestrator(seeded_store, provider) as orchestrator:
            future = orchestrator.trigger_search_sweep()
            assert provider.started.wait(timeout=5)

            assert orchestrator.search_state.status == SweepStatus.RUNNING
            assert orchestrator.trigger_search_sweep() is None
            assert orchestrator.run_search_sweep() is None

            provider.release.set()
            report = future.result(timeout=5)

        assert report.processed == 1
        assert orchestrator.search_state.status == SweepStatus.DONE

    def test_sweep_can_run_again_after_finishing(self, seeded_store):
        with _orchestrator(seeded_store, FakeSearchProvider()) as orchestrator:
            assert orchestrator.run_search_sweep() is not None
            assert orchestrator.run_search_sweep() is not None


class TestClassificationSweep:
    """Tests for the classification sweep through the orchestrator."""

    def test_token_answered_no_is_ignored(self, store, make_finding):
        store.insert(make_finding(fragments=("token=xyz",)))
        oracle = FakeOracle(answers={"token=xyz": "No"})

        with _orchestrator(store, FakeSearchProvider(), oracle=oracle) as orchestrator:
            report = orchestrator.run_classification_sweep()

        assert store.list_findings()[0].status == FindingStatus.IGNORED
        assert report.ignored == 1
        assert orchestrator.classification_state.status == SweepStatus.DONE

    def test_trigger_in_background(self, store, make_finding):
        store.insert(make_finding())
        oracle = FakeOracle(default="YES")

        with _orchestrator(store, FakeSearchProvider(), oracle=oracle) as orchestrator:
            report = orchestrator.trigger_classification_sweep().result(timeout=5)

        assert report.confirmed == 1
        assert store.list_findings()[0].status == FindingStatus.CONFIRMED

    def test_search_and_classification_are_independent(self, seeded_store, make_finding):
        seeded_store.insert(make_finding())
        provider = BlockingProvider()
        oracle = FakeOracle(default="yes")

        with _orchestrator(seeded_store, provider, oracle=oracle) as orchestrator:
            future = orchestrator.trigger_search_sweep()
            assert provider.started.wait(timeout=5)

            report = orchestrator.run_classification_sweep()

            provider.release.set()
            future.result(timeout=5)

        assert report.confirmed == 1

    def test_unexpected_oracle_error_is_isolated(self, store, make_finding):
        store.insert(make_finding(path="a.py", fragments=("malformed",)))
        store.insert(make_finding(path="b.py", fragments=("token=xyz",)))

        class MalformedReplyOracle(FakeOracle):
            def ask(self, system_prompt, content):
                super().ask(system_prompt, content)
                if content == "malformed":
                    raise AttributeError("'NoneType' object has no attribute 'content'")
                return "yes"

        oracle = MalformedReplyOracle()
        with _orchestrator(store, FakeSearchProvider(), oracle=oracle) as orchestrator:
            report = orchestrator.run_classification_sweep()
            again = orchestrator.run_classification_sweep()

        assert len(oracle.calls) == 3
        assert report.unexpected_failures == 1
        assert report.failed == 1
        assert report.confirmed == 1
        statuses = {f.path: f.status for f in store.list_findings()}
        assert statuses == {"a.py": FindingStatus.UNPROCESSED, "b.py": FindingStatus.CONFIRMED}
        assert again is not None
        assert orchestrator.classification_state.status == SweepStatus.DONE

    def test_crashed_sweep_is_marked_failed_and_can_rerun(self, oracle):
        class CrashingStore(InMemoryResultStore):
            def list_unprocessed(self):
                raise RuntimeError("driver bug")

        with _orchestrator(CrashingStore(), FakeSearchProvider(), oracle=oracle) as orchestrator:
            report = orchestrator.run_classification_sweep()
            assert orchestrator.classification_state.status == SweepStatus.FAILED
            again = orchestrator.run_classification_sweep()

        assert report.error == "Unexpected error: driver bug"
        assert again is not None

    def test_without_oracle(self, store):
        with _orchestrator(store, FakeSearchProvider()) as orchestrator:
            with pytest.raises(RuntimeError):
                orchestrator.run_classification_sweep()

    def test_listing_failure_fails_sweep(self, oracle):
        class BrokenStore(InMemoryResultStore):
            def list_unprocessed(self):
                raise StoreError("connection lost")

        with _orchestrator(BrokenStore(), FakeSearchProvider(), oracle=oracle) as orchestrator:
            report = orchestrator.run_classification_sweep()

        assert report.error == "connection lost"
        assert orchestrator.classification_state.status == SweepStatus.FAILED
