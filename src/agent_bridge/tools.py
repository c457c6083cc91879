"""
Tool dispatch contract between the agent loop and the tools it may call.

The agent only needs :class:`ToolDispatch`: the schemas to advertise and a
way to run one call. :class:`ToolRegistry` is a ready-made implementation
that maps tool names to plain Python callables.
"""
from __future__ import annotations

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from agent_bridge.errors import ToolError
from agent_bridge.types import ToolDefinition, ToolFailure, ToolResult, ToolSuccess

__all__ = ["ToolDispatch", "ToolHandler", "ToolRegistry", "DEFAULT_TOOL_TIMEOUT"]

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 60.0

HandlerResult = Union[str, ToolResult]
ToolHandler = Callable[[dict[str, Any]], Union[HandlerResult, Awaitable[HandlerResult]]]


class ToolDispatch(Protocol):
    """What the agent loop needs from the outside world's tools."""

    def definitions(self) -> list[ToolDefinition]:
        """Schemas advertised to the model."""
        ...

    async def dispatch(self, name: str, arguments: str) -> ToolResult:
        """Run tool ``name`` with raw JSON ``arguments``; never raises for tool faults."""
        ...


@dataclass(frozen=True, slots=True)
class _RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler
    timeout: Optional[float]


def _decode_arguments(arguments: str) -> dict[str, Any]:
    if not arguments.strip():
        return {}
    try:
        decoded = json.loads(arguments)
    except json.JSONDecodeError as exc:
        raise ToolError(f"Malformed tool arguments: {exc}", exc) from exc
    if not isinstance(decoded, dict):
        raise ToolError("Tool arguments must be a JSON object")
    return decoded


class ToolRegistry:
    """In-process :class:`ToolDispatch` backed by registered handlers.

    Handlers take the decoded argument object and return text (or a
    ``ToolSuccess``/``ToolFailure``); they may be sync or async. Sync
    handlers run in a worker thread so the timeout still applies to them;
    a timed-out thread is abandoned, not killed.
    """

    def __init__(self, *, timeout: Optional[float] = DEFAULT_TOOL_TIMEOUT) -> None:
        self._tools: dict[str, _RegisteredTool] = {}
        self.timeout = timeout

    def register(
        self,
        definition: ToolDefinition,
        handler: ToolHandler,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        if definition.name in self._tools:
            raise ValueError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = _RegisteredTool(
            definition, handler, timeout if timeout is not None else self.timeout
        )

    def unregister(self, name: str) -> None:
        self._tools.pop(name, None)

    def get(self, name: str) -> Optional[ToolDefinition]:
        tool = self._tools.get(name)
        return tool.definition if tool else None

    def definitions(self) -> list[ToolDefinition]:
        return [t.definition for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def dispatch(self, name: str, arguments: str) -> ToolResult:
        try:
            return await self._run(name, arguments)
        except ToolError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return ToolFailure(str(exc))

    async def _run(self, name: str, arguments: str) -> ToolResult:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolError(f"Unknown tool: {name}")

        args = _decode_arguments(arguments)
        try:
            result = await asyncio.wait_for(self._invoke(tool.handler, args), tool.timeout)
        except asyncio.TimeoutError as exc:
            raise ToolError(f"Tool {name} timed out after {tool.timeout:g} seconds", exc) from exc
        except ToolError:
            raise
        except Exception as exc:
            raise ToolError(f"Failed to execute tool: {exc}", exc) from exc

        if isinstance(result, (ToolSuccess, ToolFailure)):
            return result
        return ToolSuccess(str(result))

    @staticmethod
    async def _invoke(handler: ToolHandler, args: dict[str, Any]) -> HandlerResult:
        if inspect.iscoroutinefunction(handler):
            return await handler(args)
        result = await asyncio.to_thread(handler, args)
        if inspect.isawaitable(result):
            return await result
        return result
