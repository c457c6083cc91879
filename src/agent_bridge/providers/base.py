"""Base class shared by the backend-specific LLM clients."""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from typing import Any, AsyncGenerator, AsyncIterator, Optional, Protocol, Sequence

import httpx

from agent_bridge.errors import classify_error, error_code
from agent_bridge.response import ChatResponse, ErrorReply
from agent_bridge.stream import ErrorChunk, StreamChunk, StreamDecoder
from agent_bridge.types import Message, ToolDefinition

__all__ = ["BaseAsyncLLM", "RequestAdapter", "DEFAULT_TIMEOUT"]

# Connect fast, leave room for slow generations
DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=120.0, write=60.0, pool=10.0)


class RequestAdapter(Protocol):
    """Protocol for adapting neutral requests to one wire format and back."""

    def to_provider(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
        *,
        model: str,
        max_tokens: int,
        temperature: float,
        stream: bool,
    ) -> dict[str, Any]:
        """Build the backend request body."""
        ...

    def from_provider(self, raw: dict[str, Any]) -> ChatResponse:
        """Convert a decoded response body to a neutral response."""
        ...

    def stream_decoder(self) -> StreamDecoder:
        """Return a fresh decoder for one streamed response."""
        ...


class BaseAsyncLLM(ABC):
    """
    Base class for all LLM implementations. All implementations are async-first.

    Nothing raised by the transport or by decoding crosses this class's
    public methods: failures come back as :class:`ErrorReply` or
    :class:`ErrorChunk`. Requests are never retried here.
    """

    def __init__(
        self,
        model: str,
        *,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
        debug: bool = False,
    ) -> None:
        """
        Initializes the base LLM client.

        Args:
            model: The identifier of the LLM model to be used.
            logger: Optional logger instance. If None, a logger named after
                    this module will be used.
            name: Optional name for this component, used in logging.
                  If None, defaults to the concrete class's name.
            debug: Log request bodies when True.
        """
        self.model = model
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self.debug = debug

    @property
    @abstractmethod
    def adapter(self) -> RequestAdapter:
        """Request adapter for this provider."""
        ...

    @abstractmethod
    async def _chat_impl(self, request: dict[str, Any]) -> dict[str, Any]:
        """Send a non-streaming request and return the decoded response body."""
        ...

    @abstractmethod
    def _stream_lines(self, request: dict[str, Any]) -> AsyncGenerator[str, None]:
        """Send a streaming request and yield the raw SSE body line by line."""
        ...

    def build_request(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition],
        *,
        max_tokens: int,
        temperature: float,
        stream: bool,
    ) -> dict[str, Any]:
        request = self.adapter.to_provider(
            messages,
            tools,
            model=self.model,
            max_tokens=max_tokens,
            temperature=temperature,
            stream=stream,
        )
        if self.debug:
            self._log(f"Request body: {json.dumps(request, default=str)}")
        return request

    async def chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ChatResponse:
        """Send a chat request and return one neutral response."""
        try:
            request = self.build_request(
                messages, tools, max_tokens=max_tokens, temperature=temperature, stream=False
            )
            self._log(f"Sending request to {self.model} ({len(messages)} messages)")
            raw = await self._chat_impl(request)
        except Exception as exc:
            return self._wrap_error(exc)

        if self.debug:
            self._log(f"Response body: {json.dumps(raw, default=str)}")
        response = self.adapter.from_provider(raw)
        if isinstance(response, ErrorReply):
            self._log(response.message, logging.WARNING)
        return response

    async def stream_chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[StreamChunk]:
        """Send a streaming chat request and yield neutral chunks in arrival order."""
        try:
            request = self.build_request(
                messages, tools, max_tokens=max_tokens, temperature=temperature, stream=True
            )
            self._log(f"Streaming request to {self.model} ({len(messages)} messages)")
            decoder = self.adapter.stream_decoder()
            async with aclosing(self._stream_lines(request)) as lines, aclosing(
                decoder.decode(lines)
            ) as chunks:
                async for chunk in chunks:
                    yield chunk
        except Exception as exc:
            yield ErrorChunk(classify_error(exc, self.logger))
            return
        if self.debug:
            self._log("Stream completed")

    def _wrap_error(self, exc: Exception) -> ErrorReply:
        """Wrap exception into an error response."""
        msg = classify_error(exc, self.logger)
        return ErrorReply(msg, code=error_code(exc))

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")

    # --- lifecycle ---------------------------------------------------------
    async def aclose(self) -> None:
        """
        Close the underlying async HTTP client. Safe to call multiple times.
        """
        client = getattr(self, "_client", None)
        close = getattr(client, "close", None)
        if close:
            await close()

    async def __aenter__(self) -> "BaseAsyncLLM":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
