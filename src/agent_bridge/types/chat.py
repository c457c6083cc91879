"""Backend-neutral conversation messages."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Optional

__all__ = ["Role", "ToolCall", "Message"]


class Role(StrEnum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``arguments`` is the raw JSON text exactly as the backend produced it.
    """

    id: str
    name: str
    arguments: str = ""

    def parsed_arguments(self) -> Any:
        """Decode ``arguments``; empty text means "no arguments"."""
        if not self.arguments.strip():
            return {}
        return json.loads(self.arguments)


@dataclass(frozen=True, slots=True)
class Message:
    """One entry of the conversation history.

    Tool-invocation messages carry ``tool_calls`` and an empty ``content``;
    tool results always carry the ``tool_call_id`` they answer.
    """

    role: Role
    content: str = ""
    tool_call_id: Optional[str] = None
    tool_calls: Optional[tuple[ToolCall, ...]] = None

    def __post_init__(self) -> None:
        if self.role is Role.TOOL and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(Role.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(Role.ASSISTANT, content)

    @classmethod
    def assistant_tool_calls(cls, calls: list[ToolCall] | tuple[ToolCall, ...]) -> "Message":
        return cls(Role.ASSISTANT, "", tool_calls=tuple(calls))

    @classmethod
    def tool_result(cls, tool_call_id: str, content: str) -> "Message":
        return cls(Role.TOOL, content, tool_call_id=tool_call_id)

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)
