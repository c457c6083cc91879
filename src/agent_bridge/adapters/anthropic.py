"""Anthropic adapter for pure request/response transformations."""

from __future__ import annotations

import json
import logging
from typing import Any, Sequence

from agent_bridge.response import ChatResponse, ErrorReply, TextReply, ToolUseReply
from agent_bridge.stream import StreamChunk, StreamDecoder, TextChunk, as_object
from agent_bridge.types import Message, Role, ToolCall, ToolDefinition

__all__ = ["AnthropicRequestAdapter", "AnthropicStreamDecoder"]

logger = logging.getLogger(__name__)


def _tool_input(call: ToolCall) -> Any:
    """Anthropic wants ``input`` as a JSON object, not text."""
    try:
        return call.parsed_arguments()
    except json.JSONDecodeError:
        logger.warning("Tool call %s has malformed arguments; sending {}", call.id)
        return {}


class AnthropicRequestAdapter:
    """Adapter for converting between neutral messages and the Messages API."""

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
        """Build the Messages API request body."""
        system_parts: list[str] = []
        anthropic_messages: list[dict[str, Any]] = []

        for msg in messages:
            # The system prompt is a top-level field, not a message
            if msg.role is Role.SYSTEM:
                system_parts.append(msg.content)
                continue

            if msg.role is Role.TOOL:
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                # Results of one round share a single user turn
                prev = anthropic_messages[-1] if anthropic_messages else None
                if (
                    prev is not None
                    and prev["role"] == "user"
                    and isinstance(prev["content"], list)
                    and all(b.get("type") == "tool_result" for b in prev["content"])
                ):
                    prev["content"].append(block)
                else:
                    anthropic_messages.append({"role": "user", "content": [block]})
                continue

            if msg.role is Role.ASSISTANT and msg.tool_calls:
                content: list[dict[str, Any]] = []
                if msg.content:
                    content.append({"type": "text", "text": msg.content})
                for call in msg.tool_calls:
                    content.append(
                        {
                            "type": "tool_use",
                            "id": call.id,
                            "name": call.name,
                            "input": _tool_input(call),
                        }
                    )
                anthropic_messages.append({"role": "assistant", "content": content})
                continue

            anthropic_messages.append({"role": msg.role.value, "content": msg.content})

        request: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "stream": stream,
        }
        if system_parts:
            request["system"] = "\n\n".join(system_parts)
        request["messages"] = anthropic_messages

        if tools:
            request["tools"] = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "input_schema": tool.json_schema(),
                }
                for tool in tools
            ]
        return request

    def from_provider(self, raw: dict[str, Any]) -> ChatResponse:
        """Convert a Messages API response body to a neutral response."""
        try:
            content = raw.get("content")
            if not isinstance(content, list):
                return ErrorReply("No content in response", code="DecodeError")

            text_parts: list[str] = []
            tool_calls: list[ToolCall] = []
            for block in content:
                block_type = block.get("type")
                if block_type == "text":
                    text_parts.append(block.get("text") or "")
                elif block_type == "tool_use":
                    tool_calls.append(
                        ToolCall(
                            id=block.get("id") or "",
                            name=block.get("name") or "",
                            arguments=json.dumps(block.get("input") or {}),
                        )
                    )
        except (AttributeError, TypeError, ValueError) as exc:
            return ErrorReply(f"Failed to parse response: {exc}", code="DecodeError")

        # Tool use wins over any interleaved text
        if tool_calls:
            return ToolUseReply(tuple(tool_calls))
        return TextReply("".join(text_parts))

    def stream_decoder(self) -> "AnthropicStreamDecoder":
        return AnthropicStreamDecoder()


class AnthropicStreamDecoder(StreamDecoder):
    """Decoder for typed Messages API stream events.

    Argument fragments carry only the content-block ``index``; the block's
    tool-use id is bound to that index at ``content_block_start``.
    """

    def __init__(self) -> None:
        super().__init__()
        self._block_ids: dict[int, str] = {}

    def feed(self, event: dict[str, Any]) -> list[StreamChunk]:
        event_type = event.get("type")
        index = event.get("index")
        if not isinstance(index, int):
            index = None

        if event_type == "content_block_start":
            block = as_object(event.get("content_block"))
            if block.get("type") == "tool_use":
                call_id = block.get("id")
                if not isinstance(call_id, str) or not call_id:
                    logger.warning("Dropping tool_use block without an id at index %r", index)
                    return []
                if index is not None:
                    self._block_ids[index] = call_id
                name = block.get("name")
                return self._start(call_id, name if isinstance(name, str) else "")
            text = block.get("text")
            if block.get("type") == "text" and isinstance(text, str) and text:
                return [TextChunk(text)]
            return []

        if event_type == "content_block_delta":
            delta = as_object(event.get("delta"))
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                text = delta.get("text")
                return [TextChunk(text)] if isinstance(text, str) and text else []
            if delta_type == "input_json_delta":
                call_id = self._block_ids.get(index) if index is not None else None
                if call_id is None:
                    logger.warning("Dropping argument fragment for unknown block %r", index)
                    return []
                fragment = delta.get("partial_json")
                return self._delta(call_id, fragment) if isinstance(fragment, str) else []
            return []

        if event_type == "content_block_stop":
            call_id = self._block_ids.pop(index, None) if index is not None else None
            return self._end(call_id) if call_id is not None else []

        if event_type == "message_stop":
            return self.finish()

        if event_type == "error":
            error = event.get("error")
            if isinstance(error, dict):
                message = error.get("message") or error.get("type")
            else:
                message = error
            return self.fail(f"Stream error: {message or 'unknown'}")

        # message_start, message_delta, ping
        return []
