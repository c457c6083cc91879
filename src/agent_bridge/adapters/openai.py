"""OpenAI adapter for pure request/response transformations.

Also used for OpenAI-compatible custom endpoints.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from agent_bridge.response import ChatResponse, ErrorReply, TextReply, ToolUseReply
from agent_bridge.stream import StreamChunk, StreamDecoder, TextChunk, as_object
from agent_bridge.types import Message, Role, ToolCall, ToolDefinition

__all__ = ["OpenAIRequestAdapter", "OpenAIStreamDecoder"]

logger = logging.getLogger(__name__)

# Models that reject max_tokens in favour of max_completion_tokens
_MAX_COMPLETION_TOKENS_PREFIXES = ("gpt-5", "o1", "o3")


class OpenAIRequestAdapter:
    """Adapter for converting between neutral messages and Chat Completions."""

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
        """Build the Chat Completions request body."""
        openai_messages: list[dict[str, Any]] = []
        for msg in messages:
            openai_msg: dict[str, Any] = {"role": msg.role.value, "content": msg.content}

            if msg.role is Role.ASSISTANT and msg.tool_calls:
                openai_msg["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": call.arguments},
                    }
                    for call in msg.tool_calls
                ]
                # content is null when tool_calls is present
                if not msg.content:
                    openai_msg["content"] = None

            if msg.tool_call_id:
                openai_msg["tool_call_id"] = msg.tool_call_id

            openai_messages.append(openai_msg)

        request: dict[str, Any] = {"model": model}
        if self._requires_max_completion_tokens(model):
            request["max_completion_tokens"] = max_tokens
        else:
            request["max_tokens"] = max_tokens
        request["temperature"] = temperature
        request["stream"] = stream
        request["messages"] = openai_messages

        if tools:
            request["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": tool.json_schema(),
                    },
                }
                for tool in tools
            ]
        return request

    def _requires_max_completion_tokens(self, model: str) -> bool:
        return model.startswith(_MAX_COMPLETION_TOKENS_PREFIXES)

    def from_provider(self, raw: dict[str, Any]) -> ChatResponse:
        """Convert a Chat Completions response body to a neutral response."""
        try:
            choices = raw.get("choices")
            if not choices:
                return ErrorReply("No choices in response", code="DecodeError")
            message = choices[0].get("message")
            if not isinstance(message, dict):
                return ErrorReply("No message in choice", code="DecodeError")

            raw_calls = message.get("tool_calls") or []
            tool_calls = [
                ToolCall(
                    id=tc.get("id") or "",
                    name=tc["function"].get("name") or "",
                    arguments=tc["function"].get("arguments") or "{}",
                )
                for tc in raw_calls
            ]
            content = message.get("content") or ""
        except (AttributeError, KeyError, TypeError, IndexError) as exc:
            return ErrorReply(f"Failed to parse response: {exc}", code="DecodeError")

        if tool_calls:
            return ToolUseReply(tuple(tool_calls))
        return TextReply(content)

    def stream_decoder(self) -> "OpenAIStreamDecoder":
        return OpenAIStreamDecoder()


class OpenAIStreamDecoder(StreamDecoder):
    """Decoder for Chat Completions ``chat.completion.chunk`` payloads.

    Tool-call fragments are correlated by ``id`` when the fragment carries
    one. Otherwise the fragment's ``index`` is resolved through the binding
    recorded when that index first announced its id. Fragments whose index
    was never bound are dropped and logged.
    """

    def __init__(self) -> None:
        super().__init__()
        self._index_ids: dict[int, str] = {}

    def _resolve(self, fragment: dict[str, Any]) -> str | None:
        call_id = fragment.get("id")
        if isinstance(call_id, str) and call_id:
            return call_id
        index = fragment.get("index")
        return self._index_ids.get(index) if isinstance(index, int) else None

    def feed(self, event: dict[str, Any]) -> list[StreamChunk]:
        if "error" in event:
            error = event.get("error") or {}
            message = error.get("message") if isinstance(error, dict) else str(error)
            return self.fail(f"Stream error: {message or 'unknown'}")

        choices = event.get("choices")
        if not isinstance(choices, list) or not choices:
            return []
        delta = as_object(as_object(choices[0]).get("delta"))

        fragments = delta.get("tool_calls")
        if not isinstance(fragments, list):
            fragments = []

        chunks: list[StreamChunk] = []
        for fragment in fragments:
            if not isinstance(fragment, dict):
                logger.debug("Skipping non-object tool-call fragment: %r", fragment)
                continue
            function = as_object(fragment.get("function"))
            call_id = fragment.get("id")
            if isinstance(call_id, str) and call_id:
                index = fragment.get("index")
                if isinstance(index, int):
                    self._index_ids[index] = call_id
                name = function.get("name")
                chunks.extend(self._start(call_id, name if isinstance(name, str) else ""))

            args = function.get("arguments")
            if not isinstance(args, str) or not args:
                continue
            resolved = self._resolve(fragment)
            if resolved is None:
                logger.warning(
                    "Dropping argument fragment for unbound tool-call index %r",
                    fragment.get("index"),
                )
                continue
            chunks.extend(self._delta(resolved, args))

        content = delta.get("content")
        if isinstance(content, str) and content:
            chunks.append(TextChunk(content))
        return chunks
