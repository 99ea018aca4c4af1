"""Abstract base class for classification oracles."""

from __future__ import annotations

from abc import ABC, abstractmethod


class OracleError(Exception):
    """The oracle could not produce an answer."""

    pass


class Oracle(ABC):
    """A language model that answers a question about some content."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return oracle identifier."""
        ...

    @abstractmethod
    def ask(self, system_prompt: str, content: str) -> str:
        """Ask ``system_prompt`` about ``content`` and return the raw answer.

        Raises:
            OracleError: If the call fails or times out
        """
        ...
