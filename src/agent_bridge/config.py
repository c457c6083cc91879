"""Settings consumed by the provider factory and the agent loop."""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping, Optional

from agent_bridge.provider import Provider

__all__ = ["AgentSettings", "DEFAULT_MAX_ITERATIONS"]

DEFAULT_MAX_ITERATIONS = 10

_ENV_PREFIX = "AGENT_BRIDGE_"
_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AgentSettings:
    """Plain configuration values; where they come from is the caller's concern."""

    provider: Provider = Provider.OPENAI

    # Per-backend model names
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-sonnet-4-20250514"
    custom_model: str = ""
    custom_endpoint: str = ""

    # Generation parameters
    max_tokens: int = 4096
    temperature: float = 0.7
    stream_responses: bool = True

    # Loop and diagnostics
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    debug_logging: bool = False

    def model_for(self, provider: Optional[Provider] = None) -> str:
        """Model name configured for *provider* (defaults to the selected one)."""
        provider = provider or self.provider
        if provider is Provider.OPENAI:
            return self.openai_model
        if provider is Provider.ANTHROPIC:
            return self.anthropic_model
        return self.custom_model

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def copy(self, **kwargs: Any) -> "AgentSettings":
        """
        Create a copy of these settings with optional overrides.

        Args:
            **kwargs: Field values to override

        Returns:
            New AgentSettings instance with overrides applied
        """
        if "provider" in kwargs:
            kwargs["provider"] = Provider(kwargs["provider"])
        return replace(self, **kwargs)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AgentSettings":
        """
        Load settings from ``AGENT_BRIDGE_*`` variables.

        Unset variables keep their defaults, e.g. ``AGENT_BRIDGE_PROVIDER=anthropic``
        or ``AGENT_BRIDGE_STREAM_RESPONSES=false``.
        """
        env = os.environ if environ is None else environ
        defaults = cls()
        overrides: dict[str, Any] = {}

        for name, current in defaults.as_dict().items():
            raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            if name == "provider":
                overrides[name] = Provider(raw.strip().lower())
            elif isinstance(current, bool):
                overrides[name] = raw.strip().lower() in _TRUE_VALUES
            elif isinstance(current, int):
                overrides[name] = int(raw)
            elif isinstance(current, float):
                overrides[name] = float(raw)
            else:
                overrides[name] = raw

        return replace(defaults, **overrides)
