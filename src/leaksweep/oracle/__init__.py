"""Language-model oracles used to triage findings."""

from __future__ import annotations

from leaksweep.oracle.base import Oracle, OracleError


def get_oracle(name: str = "openai", **config) -> Oracle:
    """Factory to create an oracle.

    Args:
        name: Oracle backend (only "openai" is supported)
        **config: Backend configuration (api_key, model, base_url, timeout)

    Raises:
        OracleError: If the backend cannot be configured
        ValueError: If the backend is unknown
    """
    if name == "openai":
        from leaksweep.oracle.openai_chat import OpenAIChatOracle

        return OpenAIChatOracle(**{k: v for k, v in config.items() if v is not None})

    raise ValueError(f"Unsupported oracle: {name}")


__all__ = ["Oracle", "OracleError", "get_oracle"]
