"""Configuration loading for leaksweep.

Sweep settings live in ``leaksweep.toml``; credentials come from the
environment (or a ``.env`` file) so they never end up in the config file.

Example leaksweep.toml:
    [search]
    provider = "github"
    max_pages = 10
    extension = "py"

    [keywords]
    leak = ["acme_secret", "acme.internal"]
    security = ["password", "BEGIN RSA PRIVATE KEY"]

    [[repositories]]
    identity = "acme/api"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from leaksweep.models import TrackedRepository

CONFIG_FILENAME = "leaksweep.toml"
DEFAULT_STORE_PATH = Path(".leaksweep") / "results.json"


class ConfigError(Exception):
    """The configuration file is missing or malformed."""

    pass


class Credentials(BaseSettings):
    """API credentials and endpoints, read from LEAKSWEEP_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="LEAKSWEEP_",
        env_file=".env",
        extra="ignore",
    )

    github_token: str | None = Field(default=None, json_schema_extra={"sensitive": True})
    github_api_url: str | None = None
    gitlab_token: str | None = Field(default=None, json_schema_extra={"sensitive": True})
    gitlab_url: str | None = None
    openai_api_key: str | None = Field(default=None, json_schema_extra={"sensitive": True})
    openai_base_url: str | None = None

    def token_for(self, provider: str) -> str | None:
        return self.gitlab_token if provider == "gitlab" else self.github_token

    def url_for(self, provider: str) -> str | None:
        return self.gitlab_url if provider == "gitlab" else self.github_api_url


@dataclass
class SearchConfig:
    """Settings for the search sweep.

    Attributes:
        provider: "github" or "gitlab".
        per_page: Results requested per page.
        max_pages: Upper bound on pages fetched per query.
        max_retries: Retries per page on transient provider errors.
        backoff_base: First retry delay in seconds, doubled each retry.
        timeout: Per-request timeout in seconds.
        extension: Optional file extension all primary searches are limited to.
        max_workers: Pairs searched in parallel.
    """

    provider: str = "github"
    per_page: int = 100
    max_pages: int = 10
    max_retries: int = 3
    backoff_base: float = 2.0
    timeout: float = 20.0
    extension: str | None = None
    max_workers: int = 4

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchConfig:
        defaults = cls()
        return cls(
            provider=str(data.get("provider", defaults.provider)).lower(),
            per_page=int(data.get("per_page", defaults.per_page)),
            max_pages=int(data.get("max_pages", defaults.max_pages)),
            max_retries=int(data.get("max_retries", defaults.max_retries)),
            backoff_base=float(data.get("backoff_base", defaults.backoff_base)),
            timeout=float(data.get("timeout", defaults.timeout)),
            extension=data.get("extension") or None,
            max_workers=int(data.get("max_workers", defaults.max_workers)),
        )


@dataclass
class ClassifyConfig:
    """Settings for the classification sweep."""

    oracle: str = "openai"
    model: str = "gpt-4o-mini"
    timeout: float = 60.0
    max_retries: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassifyConfig:
        defaults = cls()
        return cls(
            oracle=str(data.get("oracle", defaults.oracle)),
            model=str(data.get("model", defaults.model)),
            timeout=float(data.get("timeout", defaults.timeout)),
            max_retries=int(data.get("max_retries", defaults.max_retries)),
        )


@dataclass
class LeakSweepConfig:
    """Complete configuration, as read from leaksweep.toml."""

    search: SearchConfig = field(default_factory=SearchConfig)
    classify: ClassifyConfig = field(default_factory=ClassifyConfig)
    store_path: Path = DEFAULT_STORE_PATH
    leak_keywords: list[str] = field(default_factory=list)
    security_keywords: list[str] = field(default_factory=list)
    repositories: list[TrackedRepository] = field(default_factory=list)
    source: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: Path | None = None) -> LeakSweepConfig:
        """Build a config from parsed TOML.

        Relative store paths resolve against the config file's directory.
        """
        search = SearchConfig.from_dict(data.get("search", {}))
        keywords = data.get("keywords", {})

        store_path = Path(data.get("store", {}).get("path", DEFAULT_STORE_PATH))
        if source is not None and not store_path.is_absolute():
            store_path = source.parent / store_path

        repositories = []
        for entry in data.get("repositories", []):
            if isinstance(entry, str):
                entry = {"identity": entry}
            if not entry.get("identity"):
                raise ConfigError("Every [[repositories]] entry needs an identity")
            entry.setdefault("provider", search.provider)
            repositories.append(TrackedRepository.from_dict(entry))

        return cls(
            search=search,
            classify=ClassifyConfig.from_dict(data.get("classify", {})),
            store_path=store_path,
            leak_keywords=_as_list(keywords.get("leak", [])),
            security_keywords=_as_list(keywords.get("security", [])),
            repositories=repositories,
            source=source,
        )


def _as_list(value: str | list[str]) -> list[str]:
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


def find_config(start: Path | None = None) -> Path | None:
    """Look for leaksweep.toml in ``start`` (default cwd) and its parents."""
    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None) -> LeakSweepConfig:
    """Load configuration from ``path`` or the discovered leaksweep.toml.

    Returns defaults when no file is given and none is found.

    Raises:
        ConfigError: If an explicit path is missing or any file is malformed.
    """
    if path is None:
        path = find_config()
        if path is None:
            return LeakSweepConfig()
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e

    try:
        return LeakSweepConfig.from_dict(data, source=path)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
