"""
The agent loop: one user turn in, an ordered stream of :mod:`events` out.

Each turn alternates provider round-trips with sequential tool execution
until the model answers in plain text, a provider error ends the turn, or
the iteration cap is reached. Whatever happens, ``Done`` is the last event.
"""
from __future__ import annotations

import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import (
    AsyncGenerator,
    AsyncIterator,
    Optional,
    Protocol,
    Sequence,
    assert_never,
)

from agent_bridge.config import AgentSettings
from agent_bridge.conversation import Conversation
from agent_bridge.errors import LoopLimitError
from agent_bridge.events import (
    AgentEvent,
    Done,
    Error,
    TextDelta,
    TextResponse,
    Thinking,
    ToolCallResult,
    ToolCallStart,
)
from agent_bridge.response import ChatResponse, ErrorReply, TextReply, ToolUseReply
from agent_bridge.stream import (
    DoneChunk,
    ErrorChunk,
    StreamChunk,
    TextChunk,
    ToolCallAccumulator,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallStartChunk,
)
from agent_bridge.tools import ToolDispatch
from agent_bridge.types import Message, ToolCall, ToolDefinition, ToolFailure, ToolResult, ToolSuccess

__all__ = ["Agent", "AgentState", "ChatProvider", "CANCELLED_TOOL_RESULT"]

CANCELLED_TOOL_RESULT = "Error: cancelled"


class ChatProvider(Protocol):
    """The two calls the loop makes on a provider (see ``BaseAsyncLLM``)."""

    async def chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ChatResponse: ...

    def stream_chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[ToolDefinition] = (),
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> AsyncIterator[StreamChunk]: ...


class AgentState(StrEnum):
    IDLE = "idle"
    THINKING = "thinking"
    TOOL_EXECUTING = "tool_executing"
    RESPONDING = "responding"
    DONE = "done"
    ERROR = "error"


@dataclass
class _StreamedRound:
    """What one streamed provider round produced."""

    text: list[str] = field(default_factory=list)
    calls: ToolCallAccumulator = field(default_factory=ToolCallAccumulator)
    error: Optional[str] = None

    def response(self) -> ChatResponse:
        if self.error is not None:
            return ErrorReply(self.error)
        if self.calls:
            return ToolUseReply(tuple(self.calls.tool_calls()))
        return TextReply("".join(self.text))


class Agent:
    """
    Orchestrates conversation turns between a provider and a tool dispatcher.

    One turn at a time: :meth:`run_turn` refuses to start while another turn
    on the same agent is still open. Hosts that let a new message supersede a
    running one should go through :class:`~agent_bridge.session.AgentSession`.
    """

    def __init__(
        self,
        provider: ChatProvider,
        tools: Optional[ToolDispatch] = None,
        *,
        settings: Optional[AgentSettings] = None,
        conversation: Optional[Conversation] = None,
        logger: Optional[logging.Logger] = None,
        name: Optional[str] = None,
    ) -> None:
        settings = settings or AgentSettings()
        if settings.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.provider = provider
        self.tools = tools
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.name = name if name is not None else self.__class__.__name__
        self._conversation = conversation or Conversation()
        self._state = AgentState.IDLE
        self._turn_open = False

    @classmethod
    def from_settings(
        cls,
        settings: AgentSettings,
        tools: Optional[ToolDispatch] = None,
        **kwargs,
    ) -> "Agent":
        """Build the provider named by ``settings`` and wrap it in an agent."""
        from agent_bridge.factory import create_llm

        return cls(create_llm(settings), tools, settings=settings, **kwargs)

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def max_iterations(self) -> int:
        return self.settings.max_iterations

    def clear_conversation(self) -> None:
        if self._turn_open:
            raise RuntimeError("Cannot clear the conversation while a turn is running")
        self._conversation.clear()

    async def run_turn(self, user_text: str) -> AsyncGenerator[AgentEvent, None]:
        """
        Process one user message and yield the turn's events.

        The generator may be closed early to cancel the turn; no new provider
        call or tool execution starts after that.
        """
        if self._turn_open:
            raise RuntimeError("A turn is already running on this agent")
        self._turn_open = True
        completed = False
        try:
            self._conversation.add_user(user_text)
            self._set_state(AgentState.THINKING)
            yield Thinking()

            try:
                async with aclosing(self._iterate()) as events:
                    async for event in events:
                        yield event
            except Exception as exc:
                self._set_state(AgentState.ERROR)
                self.logger.exception(f"[{self.name}] Turn failed")
                yield Error(f"Unexpected error: {exc}")

            completed = True
            if self._state is not AgentState.ERROR:
                self._set_state(AgentState.DONE)
            yield Done()
        finally:
            self._turn_open = False
            if not completed:
                self._log("Turn cancelled")
                self._state = AgentState.IDLE

    async def _iterate(self) -> AsyncGenerator[AgentEvent, None]:
        tools = self.tools.definitions() if self.tools is not None else []

        for iteration in range(1, self.max_iterations + 1):
            self._log(f"Iteration {iteration}/{self.max_iterations}", logging.DEBUG)

            if self.settings.stream_responses:
                streamed = _StreamedRound()
                async with aclosing(self._stream_round(streamed, tools)) as deltas:
                    async for event in deltas:
                        yield event
                response = streamed.response()
            else:
                response = await self.provider.chat(
                    self._conversation.messages(),
                    tools,
                    max_tokens=self.settings.max_tokens,
                    temperature=self.settings.temperature,
                )

            if isinstance(response, TextReply):
                self._set_state(AgentState.RESPONDING)
                # empty answers are not sent back to the model
                if response.content:
                    self._conversation.add_assistant(response.content)
                yield TextResponse(response.content)
                return
            elif isinstance(response, ToolUseReply):
                self._conversation.add_assistant_tool_calls(response.tool_calls)
                self._set_state(AgentState.TOOL_EXECUTING)
                answered: set[str] = set()
                try:
                    for call in response.tool_calls:
                        yield ToolCallStart(call.name, call.arguments, call.id)
                        result = await self._execute(call)
                        if isinstance(result, ToolSuccess):
                            text = result.output
                        else:
                            text = f"Error: {result.message}"
                        self._conversation.add_tool_result(call.id, text)
                        answered.add(call.id)
                        yield ToolCallResult(call.name, text, isinstance(result, ToolSuccess), call.id)
                finally:
                    # every tool call in history needs a result or the next request is rejected
                    for call in response.tool_calls:
                        if call.id not in answered:
                            self._conversation.add_tool_result(call.id, CANCELLED_TOOL_RESULT)
                            answered.add(call.id)
                self._set_state(AgentState.THINKING)
                yield Thinking()
            elif isinstance(response, ErrorReply):
                self._set_state(AgentState.ERROR)
                yield Error(response.message)
                return
            else:
                assert_never(response)

        limit = LoopLimitError(self.max_iterations)
        self._log(str(limit), logging.WARNING)
        self._set_state(AgentState.ERROR)
        yield Error(str(limit))

    async def _stream_round(
        self, streamed: _StreamedRound, tools: list[ToolDefinition]
    ) -> AsyncGenerator[AgentEvent, None]:
        chunks = self.provider.stream_chat(
            self._conversation.messages(),
            tools,
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
        )
        async with aclosing(chunks) as stream:
            async for chunk in stream:
                if isinstance(chunk, TextChunk):
                    streamed.text.append(chunk.text)
                    yield TextDelta(chunk.text)
                elif isinstance(chunk, (ToolCallStartChunk, ToolCallDeltaChunk, ToolCallEndChunk)):
                    streamed.calls.feed(chunk)
                elif isinstance(chunk, DoneChunk):
                    break
                elif isinstance(chunk, ErrorChunk):
                    streamed.error = chunk.message
                    break
                else:
                    assert_never(chunk)

    async def _execute(self, call: ToolCall) -> ToolResult:
        if self.tools is None:
            return ToolFailure(f"Unknown tool: {call.name}")
        self._log(f"Executing tool {call.name} ({call.id})")
        try:
            return await self.tools.dispatch(call.name, call.arguments)
        except Exception as exc:
            # dispatchers should report failures, but a raise must not end the turn
            self.logger.warning(f"[{self.name}] Tool {call.name} raised: {exc}")
            return ToolFailure(f"Failed to execute tool: {exc}")

    def _set_state(self, state: AgentState) -> None:
        if state is not self._state:
            self._log(f"{self._state} -> {state}", logging.DEBUG)
        self._state = state

    def _log(self, message: str, level: int = logging.INFO) -> None:
        self.logger.log(level, f"[{self.name}] {message}")
