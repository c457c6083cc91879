from __future__ import annotations

import logging
from typing import Type

from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from agent_bridge.config import AgentSettings
from agent_bridge.provider import Provider, get_api_key, has_api_key
from agent_bridge.providers.anthropic import AnthropicLLM
from agent_bridge.providers.base import BaseAsyncLLM
from agent_bridge.providers.openai import OpenAILLM

__all__ = ["create_llm", "is_configured"]

# map Provider enum to its LLM implementation
_LLM_REGISTRY: dict[Provider, Type[OpenAILLM] | Type[AnthropicLLM]] = {
    Provider.OPENAI: OpenAILLM,
    Provider.ANTHROPIC: AnthropicLLM,
    Provider.CUSTOM: OpenAILLM,
}


def create_llm(
    settings: AgentSettings,
    *,
    api_key: str | None = None,
    client: AsyncOpenAI | AsyncAnthropic | None = None,
    logger: logging.Logger | None = None,
    **provider_kwargs: object,
) -> BaseAsyncLLM:
    """
    Factory for the LLM client selected by ``settings.provider``.

    Args:
        settings: Selected backend, model names and custom endpoint.
        api_key: Overrides automatic lookup; if omitted, pulled from env.
        client: Optional pre-configured SDK client to wrap.
            - For Provider.OPENAI and Provider.CUSTOM: an AsyncOpenAI instance
            - For Provider.ANTHROPIC: an AsyncAnthropic instance
        logger: Optional custom logger.
        **provider_kwargs: Extra constructor args (timeout, name).
    """
    provider = settings.provider
    try:
        llm_cls = _LLM_REGISTRY[provider]
    except KeyError as exc:
        raise ValueError(f"Unsupported provider: {provider}") from exc

    model = settings.model_for(provider)
    if not model:
        raise ValueError(f"No model configured for provider {provider}")

    if client is not None:  # use caller-supplied client verbatim
        return llm_cls.from_client(
            model, client, logger=logger, debug=settings.debug_logging, **provider_kwargs
        )

    if provider is Provider.CUSTOM:
        if not settings.custom_endpoint.strip():
            raise ValueError("Custom provider requires a custom_endpoint")
        provider_kwargs.setdefault("base_url", settings.custom_endpoint)

    key = api_key if api_key is not None else get_api_key(provider)
    return llm_cls(
        model,
        api_key=key,
        logger=logger,
        debug=settings.debug_logging,
        **provider_kwargs,
    )


def is_configured(settings: AgentSettings) -> bool:
    """True when ``create_llm(settings)`` has what it needs to build a client."""
    if settings.provider is Provider.CUSTOM:
        return bool(settings.custom_endpoint.strip())
    return has_api_key(settings.provider)
