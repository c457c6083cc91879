from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from agent_bridge.types import ToolCall

__all__ = ["TextReply", "ToolUseReply", "ErrorReply", "ChatResponse"]


@dataclass(frozen=True, slots=True)
class TextReply:
    """The model answered with plain text."""

    content: str


@dataclass(frozen=True, slots=True)
class ToolUseReply:
    """The model asked for one or more tools, in emitted order."""

    tool_calls: tuple[ToolCall, ...]


@dataclass(frozen=True, slots=True)
class ErrorReply:
    """The request failed; ``code`` is the HTTP status or error class when known."""

    message: str
    code: Optional[str] = None


ChatResponse = Union[TextReply, ToolUseReply, ErrorReply]
