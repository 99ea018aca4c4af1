"""HTTP helpers shared by the search providers."""

from __future__ import annotations

import logging
from typing import Any

import requests

from leaksweep import __version__
from leaksweep.search.base import ProviderQueryRejectedError, ProviderUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0

# Statuses worth retrying later
TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


def make_session(headers: dict[str, str] | None = None) -> requests.Session:
    """Create a session with the default User-Agent and extra headers."""
    session = requests.Session()
    session.headers.update({"User-Agent": f"leaksweep/{__version__}"})
    if headers:
        session.headers.update(headers)
    return session


def is_rate_limited(response: requests.Response) -> bool:
    """Whether a 403 is a rate-limit/abuse response rather than a denial."""
    if response.headers.get("Retry-After"):
        return True
    if response.headers.get("X-RateLimit-Remaining") == "0":
        return True
    body = (response.text or "").lower()
    return "rate limit" in body or "abuse detection" in body


def get_json(
    session: requests.Session,
    url: str,
    params: dict[str, Any] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> tuple[Any, requests.Response]:
    """GET ``url`` and decode JSON, mapping failures onto search errors.

    Returns:
        Tuple of (decoded body, response).

    Raises:
        ProviderUnavailableError: Network error, timeout, rate limit or 5xx.
        ProviderQueryRejectedError: Any other non-2xx status.
    """
    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.Timeout as e:
        raise ProviderUnavailableError(f"Request to {url} timed out") from e
    except requests.RequestException as e:
        raise ProviderUnavailableError(f"Request to {url} failed: {e}") from e

    status = response.status_code
    if status in TRANSIENT_STATUSES or (status == 403 and is_rate_limited(response)):
        raise ProviderUnavailableError(f"HTTP {status} from {url}")
    if status >= 400:
        raise ProviderQueryRejectedError(f"HTTP {status} from {url}: {response.text[:200]}")

    try:
        return response.json(), response
    except ValueError as e:
        raise ProviderUnavailableError(f"Invalid JSON from {url}") from e
