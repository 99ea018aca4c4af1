"""Tests for the leaksweep CLI."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from leaksweep import __version__
from leaksweep.cli import app
from leaksweep.cli_commands.helpers import seed_store
from leaksweep.config import LeakSweepConfig
from leaksweep.models import FilterClass, TrackedRepository
from leaksweep.search.base import SearchPage
from leaksweep.search.client import SearchClient
from leaksweep.store import InMemoryResultStore
from tests.helpers import FakeOracle, FakeSearchProvider, github_item

runner = CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    path = tmp_path / "leaksweep.toml"
    path.write_text(
        '[store]\npath = "results.json"\n\n'
        '[keywords]\nleak = ["baidu"]\nsecurity = ["password"]\n\n'
        '[[repositories]]\nidentity = "acme/api"\n'
    )
    return path


@pytest.fixture
def fake_search(monkeypatch) -> FakeSearchProvider:
    provider = FakeSearchProvider(
        pages={
            ("acme/api", "baidu"): {
                None: SearchPage(
                    items=[github_item("acme/api", "settings.py", ["baidu_secret_key = abc123"])]
                )
            }
        }
    )
    monkeypatch.setattr(
        "leaksweep.cli_commands.sweep.build_client",
        lambda _config, _credentials: SearchClient(provider, sleep=lambda _s: None),
    )
    return provider


def _findings(config_path: Path, *args: str) -> list[dict]:
    result = runner.invoke(app, ["findings", "-c", str(config_path), "--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_version():
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_missing_config_exits(tmp_path: Path):
    result = runner.invoke(app, ["search", "-c", str(tmp_path / "nope.toml")])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_search_stores_findings(config_path: Path, fake_search):
    result = runner.invoke(app, ["search", "-c", str(config_path), "--json"])

    assert result.exit_code == 0, result.output
    report = json.loads(result.stdout)
    assert report["processed"] == 1
    assert report["findings_inserted"] == 1

    (finding,) = _findings(config_path)
    assert finding["repository"] == "acme/api"
    assert finding["status"] == 0
    assert finding["payload"]["fragments"] == ["baidu_secret_key = abc123"]
    assert (config_path.parent / "results.json").exists()


def test_search_suppressed_repository(config_path: Path, fake_search):
    fake_search.counts[("acme/api", "password")] = 3

    result = runner.invoke(app, ["search", "-c", str(config_path), "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["suppressed_repositories"] == ["acme/api"]
    assert _findings(config_path) == []


def test_classify_confirms(config_path: Path, fake_search, monkeypatch):
    runner.invoke(app, ["search", "-c", str(config_path)])
    monkeypatch.setattr(
        "leaksweep.cli_commands.sweep.build_oracle",
        lambda _config, _credentials: FakeOracle(default="Yes"),
    )

    result = runner.invoke(app, ["classify", "-c", str(config_path), "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["confirmed"] == 1
    assert _findings(config_path, "--status", "confirmed")[0]["path"] == "settings.py"
    assert _findings(config_path, "--status", "unprocessed") == []


def test_findings_invalid_status(config_path: Path):
    result = runner.invoke(app, ["findings", "-c", str(config_path), "--status", "bogus"])

    assert result.exit_code == 1
    assert "Invalid status" in result.output


def test_repos_lists_configured_repositories(config_path: Path):
    result = runner.invoke(app, ["repos", "-c", str(config_path)])

    assert result.exit_code == 0, result.output
    assert "acme/api" in result.output


def test_repos_discover_requires_gitlab(config_path: Path):
    result = runner.invoke(app, ["repos", "-c", str(config_path), "--discover"])

    assert result.exit_code == 1
    assert "gitlab" in result.output


def test_repos_discover_gitlab(tmp_path: Path, monkeypatch):
    config_path = tmp_path / "leaksweep.toml"
    config_path.write_text('[search]\nprovider = "gitlab"\n\n[store]\npath = "results.json"\n')
    groups: list[str | None] = []

    class FakeGitLab:
        def list_projects(self, group=None):
            groups.append(group)
            return [TrackedRepository("acme/web", "https://gitlab.com/acme/web", "gitlab")]

    monkeypatch.setattr(
        "leaksweep.cli_commands.findings.build_provider",
        lambda _config, _credentials: FakeGitLab(),
    )

    result = runner.invoke(
        app, ["repos", "-c", str(config_path), "--discover", "--group", "acme"]
    )

    assert result.exit_code == 0, result.output
    assert groups == ["acme"]
    assert "Tracking 1 project" in result.output


def test_seed_store_skips_keywords_with_commas(monkeypatch):
    logger = MagicMock()
    monkeypatch.setattr("leaksweep.cli_commands.helpers.logger", logger)
    store = InMemoryResultStore()

    seed_store(store, LeakSweepConfig(leak_keywords=["a,b", "baidu"]))

    assert store.load_keyword_filters(FilterClass.LEAK_KEYWORD) == ["baidu"]
    logger.warning.assert_called_once()
    assert "a,b" in logger.warning.call_args.args
