"""Oracle backed by an OpenAI-compatible chat completions API."""

from __future__ import annotations

import logging
import os

from openai import APIError, OpenAI, OpenAIError

from leaksweep.oracle.base import Oracle, OracleError

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_RETRIES = 2

# Yes/no answers need a handful of tokens
MAX_ANSWER_TOKENS = 8


class OpenAIChatOracle(Oracle):
    """Chat completions oracle.

    Works with api.openai.com and any server exposing the same API
    (set ``base_url``). The SDK handles rate-limit and connection retries;
    whatever still fails is raised as OracleError.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: OpenAI | None = None,
    ):
        """Initialize the oracle.

        Args:
            api_key: API key (or use OPENAI_API_KEY env var)
            model: Chat model name
            base_url: Alternative API base URL
            timeout: Per-request timeout in seconds
            max_retries: SDK-level retries for transient errors
            client: Preconfigured client, mainly for tests
        """
        self.model = model
        if client is None:
            api_key = api_key or os.environ.get("OPENAI_API_KEY")
            if not api_key:
                raise OracleError(
                    "No OpenAI API key provided. Set OPENAI_API_KEY or LEAKSWEEP_OPENAI_API_KEY."
                )
            client = OpenAI(
                api_key=api_key,
                base_url=base_url,
                timeout=timeout,
                max_retries=max_retries,
            )
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    def ask(self, system_prompt: str, content: str) -> str:
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": content},
                ],
                temperature=0,
                max_tokens=MAX_ANSWER_TOKENS,
            )
        except APIError as e:
            raise OracleError(f"Chat completion failed: {e}") from e
        except OpenAIError as e:
            raise OracleError(f"OpenAI client error: {e}") from e

        if not response.choices:
            raise OracleError("Chat completion returned no choices")
        message = response.choices[0].message
        if message is None:
            raise OracleError("Chat completion choice has no message")
        answer = message.content or ""
        logger.debug("Oracle answered %r", answer)
        return answer
