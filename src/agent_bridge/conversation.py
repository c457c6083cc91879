"""Conversation history owned by one agent."""
from __future__ import annotations

from typing import Optional, Sequence

from agent_bridge.types import Message, Role, ToolCall

__all__ = ["Conversation", "DEFAULT_SYSTEM_PROMPT", "MAX_TOOL_RESULT_LENGTH"]

# ~2000 tokens per tool result
MAX_TOOL_RESULT_LENGTH = 8000

DEFAULT_SYSTEM_PROMPT = """\
You are an expert AI coding assistant integrated into the developer's editor. You help developers with coding tasks by:

1. Understanding the project structure and codebase
2. Reading and writing files
3. Searching for code patterns
4. Running terminal commands (builds, tests, git, etc.)
5. Providing clear explanations for your actions

Guidelines:
- Always explore the codebase before making changes to understand context
- Use tools to gather information before responding
- When modifying code, explain what you're changing and why
- Be careful with destructive operations (deleting files, force pushes, etc.)
- If a task requires multiple steps, work through them methodically
- When encountering errors, analyze them and suggest fixes
- Keep responses concise but informative

Always use the appropriate tool for the task at hand. Think step by step."""


def truncate_tool_result(result: str, limit: int = MAX_TOOL_RESULT_LENGTH) -> str:
    """Cap ``result`` at ``limit`` characters, noting how much was cut."""
    if len(result) <= limit:
        return result
    return (
        result[:limit]
        + f"\n\n[Result truncated - showing first {limit} characters of {len(result)} total]"
    )


class Conversation:
    """
    Append-only message history that always starts with the system preamble.

    Messages are immutable once appended; :meth:`messages` returns a snapshot.
    """

    def __init__(self, system_prompt: str = DEFAULT_SYSTEM_PROMPT) -> None:
        self._system_prompt = system_prompt
        self._messages: list[Message] = [Message.system(system_prompt)]

    @property
    def system_prompt(self) -> str:
        return self._system_prompt

    def add_user(self, text: str) -> None:
        self._messages.append(Message.user(text))

    def add_assistant(self, text: str) -> None:
        self._messages.append(Message.assistant(text))

    def add_assistant_tool_calls(self, calls: Sequence[ToolCall]) -> None:
        self._messages.append(Message.assistant_tool_calls(tuple(calls)))

    def add_tool_result(self, call_id: str, text: str) -> None:
        # Tool output (file reads, search hits) is capped before it reaches the model
        self._messages.append(Message.tool_result(call_id, truncate_tool_result(text)))

    def messages(self) -> list[Message]:
        return list(self._messages)

    def clear(self) -> None:
        self._messages = [Message.system(self._system_prompt)]

    def is_empty(self) -> bool:
        """True when only the system preamble is present."""
        return len(self._messages) <= 1

    def last_user_message(self) -> Optional[str]:
        for msg in reversed(self._messages):
            if msg.role is Role.USER:
                return msg.content
        return None

    def __len__(self) -> int:
        return len(self._messages)
