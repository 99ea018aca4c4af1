"""Sweep code-hosting search APIs for leaked secrets.

leaksweep helps you:
- Search GitHub or GitLab for your organization's leak keywords
- Drop noisy repositories with a second pass over security keywords
- Triage surviving findings with a yes/no language-model check
"""

__version__ = "0.1.0"

from leaksweep.models import Finding, FindingStatus, SearchQuery, TrackedRepository

__all__ = ["Finding", "FindingStatus", "SearchQuery", "TrackedRepository", "__version__"]
