from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Optional, Self

import httpx
from openai import AsyncOpenAI

from agent_bridge.adapters.openai import OpenAIRequestAdapter
from agent_bridge.providers.base import DEFAULT_TIMEOUT, BaseAsyncLLM, RequestAdapter

__all__ = ["OpenAILLM"]


class OpenAILLM(BaseAsyncLLM):
    """
    OpenAI Chat Completions client (async-only).

    Pass ``base_url`` to talk to any OpenAI-compatible endpoint.
    Use ``OpenAILLM.from_client`` when you already have an ``AsyncOpenAI`` instance.
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
        self._client = AsyncOpenAI(
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
            base_url=base_url,
        )
        self._adapter = OpenAIRequestAdapter()

    # Alternate constructor
    @classmethod
    def from_client(
        cls,
        model: str,
        client: AsyncOpenAI,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        debug: bool = False,
    ) -> Self:
        """
        Build an ``OpenAILLM`` around an already-configured ``AsyncOpenAI`` client.
        """
        if not isinstance(client, AsyncOpenAI):
            raise TypeError(
                f"OpenAILLM.from_client expects AsyncOpenAI; got {type(client).__name__}"
            )

        self = cls.__new__(cls)  # bypass __init__
        BaseAsyncLLM.__init__(self, model=model, logger=logger, name=name, debug=debug)
        self.api_key = client.api_key
        self._client = client
        self._adapter = OpenAIRequestAdapter()
        return self

    @property
    def adapter(self) -> RequestAdapter:
        """Request adapter for the Chat Completions wire format."""
        return self._adapter

    async def _chat_impl(self, request: dict[str, Any]) -> dict[str, Any]:
        completion = await self._client.chat.completions.create(**request)
        return completion.model_dump(mode="json")

    async def _stream_lines(self, request: dict[str, Any]) -> AsyncGenerator[str, None]:
        # Raw body lines; framing is decoded by OpenAIStreamDecoder
        async with self._client.chat.completions.with_streaming_response.create(
            **request
        ) as response:
            async for line in response.iter_lines():
                yield line
