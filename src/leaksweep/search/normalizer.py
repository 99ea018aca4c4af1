"""Convert raw provider results into NormalizedMatch records.

The payload kind is decided here, once. Items with highlighted fragments
become StructuredFragments; anything else keeps its raw text.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

from leaksweep.models import MatchPayload, NormalizedMatch, RawText, StructuredFragments

SUMMARY_MAX_LENGTH = 200


def summarize(text: str) -> str:
    """First non-empty line of ``text``, truncated."""
    for line in text.splitlines():
        line = line.strip()
        if line:
            return line[:SUMMARY_MAX_LENGTH]
    return ""


def build_payload(fragments: list[str], raw_text: str) -> MatchPayload:
    """Pick the payload variant for a result."""
    kept = tuple(f for f in fragments if f)
    if kept:
        return StructuredFragments(kept)
    return RawText(raw_text)


def normalize_github_item(item: dict[str, Any]) -> NormalizedMatch:
    """Normalize one item from GitHub's ``/search/code`` response.

    Fragments come from ``text_matches`` (requested with the text-match
    media type). Without them, the raw item is kept as JSON text.
    """
    repository = item.get("repository") or {}
    fragments = [
        text_match.get("fragment") or ""
        for text_match in item.get("text_matches") or []
        if isinstance(text_match, dict)
    ]
    raw_text = ""
    if not any(fragments):
        raw_text = json.dumps(item, sort_keys=True, default=str)
    payload = build_payload(fragments, raw_text)

    path = item.get("path") or item.get("name") or ""
    summary = summarize(payload.evidence_text()) or path
    return NormalizedMatch(
        repository=repository.get("full_name") or "",
        repository_url=repository.get("html_url") or "",
        path=path,
        url=item.get("html_url") or "",
        payload=payload,
        summary=summary,
    )


def gitlab_blob_url(web_url: str, ref: str, path: str, startline: int | None) -> str:
    """Browser URL for a blob hit."""
    if not web_url:
        return ""
    url = f"{web_url.rstrip('/')}/-/blob/{quote(ref or 'HEAD')}/{quote(path)}"
    if startline:
        url += f"#L{startline}"
    return url


def normalize_gitlab_blob(
    blob: dict[str, Any],
    repository: str,
    web_url: str = "",
) -> NormalizedMatch:
    """Normalize one blob from GitLab's ``scope=blobs`` search.

    GitLab returns a single ``data`` excerpt per hit and no repository
    object, so the caller supplies the repository identity and web URL.
    """
    path = blob.get("path") or blob.get("filename") or ""
    data = blob.get("data") or ""
    payload = build_payload([data], json.dumps(blob, sort_keys=True, default=str))
    return NormalizedMatch(
        repository=repository,
        repository_url=web_url,
        path=path,
        url=gitlab_blob_url(web_url, blob.get("ref") or "", path, blob.get("startline")),
        payload=payload,
        summary=summarize(data) or path,
    )
