"""Search query construction.

Code search grammars (GitHub and GitLab advanced search) split bare words,
so a keyword containing whitespace must be sent as a quoted phrase.
``parse_query`` reverses ``build_query`` and is used by tests and logging.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass

EXTENSION_QUALIFIER = "extension"
REPOSITORY_QUALIFIER = "repo"

# Characters that would otherwise be read as qualifiers, quotes or escapes
_SPECIAL_CHARS = frozenset("\"'\\:")


@dataclass(frozen=True)
class ParsedQuery:
    """Components recovered from a query string."""

    keyword: str
    extension: str | None = None
    repository: str | None = None


def quote_keyword(keyword: str) -> str:
    """Quote a keyword as a single phrase when the grammar would split it."""
    keyword = keyword.strip()
    if not keyword:
        return keyword
    needs_quotes = any(ch.isspace() or ch in _SPECIAL_CHARS for ch in keyword)
    if not needs_quotes:
        return keyword
    escaped = keyword.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_query(
    keyword: str,
    extension: str | None = None,
    repository: str | None = None,
) -> str:
    """Build a provider query string.

    Args:
        keyword: Term or phrase to search for.
        extension: Optional file extension, with or without leading dot.
        repository: Optional repository scope (``owner/name``).

    Returns:
        Query string such as ``"secret key" extension:py repo:acme/api``.
    """
    parts = [quote_keyword(keyword)]
    if extension:
        parts.append(f"{EXTENSION_QUALIFIER}:{extension.lstrip('.')}")
    if repository:
        parts.append(f"{REPOSITORY_QUALIFIER}:{repository}")
    return " ".join(parts)


def parse_query(query: str) -> ParsedQuery:
    """Split a query built by ``build_query`` back into its parts."""
    query = query.strip()
    lexer = shlex.shlex(query, posix=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    tokens = list(lexer)

    keyword_parts: list[str] = []
    extension = None
    repository = None
    if query.startswith('"') and tokens:
        # A quoted phrase is always the keyword, even if it contains a colon
        keyword_parts.append(tokens.pop(0))
    for token in tokens:
        name, sep, value = token.partition(":")
        if sep and name == EXTENSION_QUALIFIER and value:
            extension = value
        elif sep and name == REPOSITORY_QUALIFIER and value:
            repository = value
        else:
            keyword_parts.append(token)
    return ParsedQuery(
        keyword=" ".join(keyword_parts),
        extension=extension,
        repository=repository,
    )
