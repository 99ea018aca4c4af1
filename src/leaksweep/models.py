"""Data model shared by the search, filter and classification stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FindingStatus(Enum):
    """Lifecycle of a persisted finding.

    Values match the storage codes used by the result database.
    """

    UNPROCESSED = 0
    CONFIRMED = 1  # Confirmed sensitive
    IGNORED = 2

    @property
    def label(self) -> str:
        """Human-readable label for tables and logs."""
        return {
            FindingStatus.UNPROCESSED: "unprocessed",
            FindingStatus.CONFIRMED: "confirmed",
            FindingStatus.IGNORED: "ignored",
        }[self]

    @classmethod
    def from_label(cls, label: str) -> FindingStatus:
        """Parse a status label (as printed by ``label``)."""
        for status in cls:
            if status.label == label.lower():
                return status
        raise ValueError(f"Unknown finding status: {label}")


class RepositoryStatus(Enum):
    """Whether a tracked repository has been through the secondary filter."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IGNORED = "ignored"


class FilterClass(Enum):
    """Class of a stored keyword filter."""

    LEAK_KEYWORD = "keyword"
    SECURITY_KEYWORD = "sec_keyword"


@dataclass(frozen=True)
class StructuredFragments:
    """Match payload made of highlighted fragments, in provider order."""

    fragments: tuple[str, ...]

    kind = "fragments"

    def evidence_text(self) -> str:
        """Fragments joined with newlines."""
        return "\n".join(f for f in self.fragments if f)


@dataclass(frozen=True)
class RawText:
    """Match payload for providers (or items) without fragments."""

    text: str

    kind = "raw"

    def evidence_text(self) -> str:
        return self.text


MatchPayload = StructuredFragments | RawText


def payload_to_dict(payload: MatchPayload) -> dict:
    """Serialize a payload with an explicit kind tag."""
    if isinstance(payload, StructuredFragments):
        return {"kind": payload.kind, "fragments": list(payload.fragments)}
    return {"kind": payload.kind, "text": payload.text}


def payload_from_dict(data: dict) -> MatchPayload:
    """Inverse of ``payload_to_dict``."""
    if data.get("kind") == StructuredFragments.kind:
        return StructuredFragments(tuple(data.get("fragments", [])))
    return RawText(data.get("text", ""))


@dataclass(frozen=True)
class SearchQuery:
    """A keyword search, optionally narrowed to an extension or repository.

    Built once per (repository, keyword) pair. The page cursor lives in the
    search client, never here.
    """

    keyword: str
    extension: str | None = None
    repository: str | None = None


@dataclass(frozen=True)
class NormalizedMatch:
    """One file hit, in provider-independent form."""

    repository: str
    repository_url: str
    path: str
    url: str
    payload: MatchPayload
    summary: str = ""


@dataclass
class Finding:
    """A persisted match of a leak keyword in one file of one repository."""

    repository: str
    repository_url: str
    keyword: str
    path: str
    url: str
    payload: MatchPayload
    matches: str = ""
    secondary_keyword: str | None = None
    status: FindingStatus = FindingStatus.UNPROCESSED
    id: int | None = None

    @classmethod
    def from_match(
        cls,
        match: NormalizedMatch,
        keyword: str,
        secondary_keyword: str | None = None,
    ) -> Finding:
        """Create an unprocessed finding from a normalized match."""
        return cls(
            repository=match.repository,
            repository_url=match.repository_url,
            keyword=keyword,
            path=match.path,
            url=match.url,
            payload=match.payload,
            matches=match.summary,
            secondary_keyword=secondary_keyword,
        )

    @property
    def natural_key(self) -> tuple[str, str, str, str]:
        """Identity used to make inserts idempotent."""
        return (self.repository, self.path, self.keyword, self.url)

    def evidence_text(self) -> str:
        """Text handed to the classifier.

        Falls back to the one-line summary when the payload is empty.
        """
        return self.payload.evidence_text() or self.matches

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "repository": self.repository,
            "repository_url": self.repository_url,
            "keyword": self.keyword,
            "secondary_keyword": self.secondary_keyword,
            "path": self.path,
            "url": self.url,
            "matches": self.matches,
            "payload": payload_to_dict(self.payload),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Finding:
        return cls(
            id=data.get("id"),
            repository=data["repository"],
            repository_url=data.get("repository_url", ""),
            keyword=data["keyword"],
            secondary_keyword=data.get("secondary_keyword"),
            path=data.get("path", ""),
            url=data.get("url", ""),
            matches=data.get("matches", ""),
            payload=payload_from_dict(data.get("payload", {})),
            status=FindingStatus(data.get("status", FindingStatus.UNPROCESSED.value)),
        )


@dataclass
class TrackedRepository:
    """A repository known to belong to the organization."""

    identity: str
    url: str = ""
    provider: str = "github"
    status: RepositoryStatus = RepositoryStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "identity": self.identity,
            "url": self.url,
            "provider": self.provider,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TrackedRepository:
        return cls(
            identity=data["identity"],
            url=data.get("url", ""),
            provider=data.get("provider", "github"),
            status=RepositoryStatus(data.get("status", RepositoryStatus.PENDING.value)),
        )


@dataclass
class KeywordFilter:
    """A stored keyword list; content is comma-separated."""

    filter_class: FilterClass
    content: str

    def terms(self) -> list[str]:
        """Individual keywords, blanks dropped."""
        return [term.strip() for term in self.content.split(",") if term.strip()]


@dataclass
class SweepReport:
    """Counts reported when a sweep finishes."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    findings_inserted: int = 0
    store_failures: int = 0
    suppressed_repositories: list[str] = field(default_factory=list)
    cancelled: bool = False
    error: str | None = None

    @property
    def total(self) -> int:
        return self.processed + self.skipped + self.failed
