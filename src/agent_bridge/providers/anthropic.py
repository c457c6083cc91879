from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Optional, Self

import httpx
from anthropic import AsyncAnthropic

from agent_bridge.adapters.anthropic import AnthropicRequestAdapter
from agent_bridge.providers.base import DEFAULT_TIMEOUT, BaseAsyncLLM, RequestAdapter

__all__ = ["AnthropicLLM"]


class AnthropicLLM(BaseAsyncLLM):
    """
    Anthropic Messages API client (async-only).

    Use ``AnthropicLLM.from_client`` when you already have an ``AsyncAnthropic`` instance.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        timeout: float | httpx.Timeout = DEFAULT_TIMEOUT,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        base_url: Optional[str] = None,
        debug: bool = False,
    ) -> None:
        super().__init__(model=model, logger=logger, name=name, debug=debug)
        self.api_key = api_key
        self._client = AsyncAnthropic(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
            base_url=base_url,
        )
        self._adapter = AnthropicRequestAdapter()

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncAnthropic,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        debug: bool = False,
    ) -> Self:
        """
        Wrap an existing ``AsyncAnthropic`` client.
        """
        if not isinstance(client, AsyncAnthropic):
            raise TypeError(
                f"AnthropicLLM.from_client expects AsyncAnthropic; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model, logger=logger, name=name, debug=debug)
        self.api_key = client.api_key or ""
        self._client = client
        self._adapter = AnthropicRequestAdapter()
        return self

    @property
    def adapter(self) -> RequestAdapter:
        """Request adapter for the Anthropic wire format."""
        return self._adapter

    async def _chat_impl(self, request: dict[str, Any]) -> dict[str, Any]:
        message = await self._client.messages.create(**request)
        return message.model_dump(mode="json")

    async def _stream_lines(self, request: dict[str, Any]) -> AsyncGenerator[str, None]:
        # Raw body lines; framing is decoded by AnthropicStreamDecoder
        async with self._client.messages.with_streaming_response.create(**request) as response:
            async for line in response.iter_lines():
                yield line
