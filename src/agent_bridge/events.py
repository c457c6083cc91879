"""Events an agent turn reports to its caller, in emission order."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

__all__ = [
    "Thinking",
    "TextDelta",
    "TextResponse",
    "ToolCallStart",
    "ToolCallResult",
    "Error",
    "Done",
    "AgentEvent",
]


@dataclass(frozen=True, slots=True)
class Thinking:
    """A provider round-trip is about to start."""


@dataclass(frozen=True, slots=True)
class TextDelta:
    text: str


@dataclass(frozen=True, slots=True)
class TextResponse:
    content: str


@dataclass(frozen=True, slots=True)
class ToolCallStart:
    tool_name: str
    arguments: str
    call_id: str = ""


@dataclass(frozen=True, slots=True)
class ToolCallResult:
    tool_name: str
    result: str
    success: bool
    call_id: str = ""


@dataclass(frozen=True, slots=True)
class Error:
    message: str


@dataclass(frozen=True, slots=True)
class Done:
    """Always the last event of a turn."""


AgentEvent = Union[Thinking, TextDelta, TextResponse, ToolCallStart, ToolCallResult, Error, Done]
