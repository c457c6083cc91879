from __future__ import annotations

import os
from enum import StrEnum
from typing import Final

from dotenv import load_dotenv

load_dotenv()


class Provider(StrEnum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    CUSTOM = "custom"  # any OpenAI-compatible endpoint


_ENV_VARS: Final[dict[Provider, str]] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.ANTHROPIC: "ANTHROPIC_API_KEY",
    Provider.CUSTOM: "CUSTOM_LLM_API_KEY",
}

# Self-hosted endpoints often run without auth
_OPTIONAL_KEYS: Final[frozenset[Provider]] = frozenset({Provider.CUSTOM})


def get_api_key(provider: Provider) -> str:
    """Return the API key for *provider* or raise RuntimeError."""
    try:
        env_var = _ENV_VARS[provider]
    except KeyError:
        raise RuntimeError(f"No config for {provider!s}") from None

    try:
        return os.environ[env_var]
    except KeyError as exc:
        if provider in _OPTIONAL_KEYS:
            return ""
        raise RuntimeError(f"{env_var} missing") from exc


def has_api_key(provider: Provider) -> bool:
    env_var = _ENV_VARS.get(provider)
    return bool(env_var and os.environ.get(env_var))


__all__ = ["Provider", "get_api_key", "has_api_key"]
