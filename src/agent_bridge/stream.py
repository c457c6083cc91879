"""Streaming primitives shared by every backend.

Adapters turn a line-oriented Server-Sent-Events body into neutral
:data:`StreamChunk` values through a :class:`StreamDecoder`. The Agent Loop
rebuilds finished tool calls from those chunks with a
:class:`ToolCallAccumulator`.

Per-line decoding is best-effort: a malformed ``data:`` payload yields an
:attr:`LineKind.SKIP` outcome and the stream carries on. Failures of the
response as a whole (status, transport) surface as a single
:class:`ErrorChunk`.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncGenerator, AsyncIterable, Optional, Union

from agent_bridge.types import ToolCall

__all__ = [
    "TextChunk",
    "ToolCallStartChunk",
    "ToolCallDeltaChunk",
    "ToolCallEndChunk",
    "DoneChunk",
    "ErrorChunk",
    "StreamChunk",
    "LineKind",
    "SSELine",
    "parse_sse_line",
    "as_object",
    "StreamDecoder",
    "ToolCallAccumulator",
]

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True, slots=True)
class TextChunk:
    text: str


@dataclass(frozen=True, slots=True)
class ToolCallStartChunk:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class ToolCallDeltaChunk:
    id: str
    args_fragment: str


@dataclass(frozen=True, slots=True)
class ToolCallEndChunk:
    id: str


@dataclass(frozen=True, slots=True)
class DoneChunk:
    pass


@dataclass(frozen=True, slots=True)
class ErrorChunk:
    message: str


StreamChunk = Union[
    TextChunk,
    ToolCallStartChunk,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    DoneChunk,
    ErrorChunk,
]


class LineKind(Enum):
    IGNORE = "ignore"
    EVENT = "event"
    SENTINEL = "sentinel"
    SKIP = "skip"


@dataclass(frozen=True, slots=True)
class SSELine:
    kind: LineKind
    data: Optional[dict[str, Any]] = None


_IGNORED = SSELine(LineKind.IGNORE)
_SENTINEL = SSELine(LineKind.SENTINEL)
_SKIPPED = SSELine(LineKind.SKIP)


def parse_sse_line(line: str) -> SSELine:
    """Classify one SSE line and decode its JSON payload."""
    if not line.startswith(DATA_PREFIX):
        # blank separators, ": keep-alive" comments, event:/id: fields
        return _IGNORED

    payload = line[len(DATA_PREFIX):].strip()
    if not payload:
        return _IGNORED
    if payload == DONE_SENTINEL:
        return _SENTINEL

    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed SSE payload: %r", payload[:200])
        return _SKIPPED

    if not isinstance(data, dict):
        logger.debug("Skipping non-object SSE payload: %r", payload[:200])
        return _SKIPPED
    return SSELine(LineKind.EVENT, data)


def as_object(value: Any) -> dict[str, Any]:
    """``value`` if it is a JSON object, else an empty one."""
    return value if isinstance(value, dict) else {}


class StreamDecoder(ABC):
    """Incremental decoder for one streamed response.

    Subclasses translate backend events in :meth:`feed`. The base class owns
    the ordered map of open tool calls so every started call is ended exactly
    once, and drives the line loop in :meth:`decode`.
    """

    def __init__(self) -> None:
        # id -> accumulated argument text, in start order
        self._open: dict[str, str] = {}
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @abstractmethod
    def feed(self, event: dict[str, Any]) -> list[StreamChunk]:
        """Translate one decoded event into zero or more chunks."""
        ...

    def on_sentinel(self) -> list[StreamChunk]:
        """Handle a literal ``data: [DONE]`` line."""
        return self.finish()

    # --- helpers for subclasses --------------------------------------------
    def _start(self, call_id: str, name: str) -> list[StreamChunk]:
        if call_id in self._open:
            return []
        self._open[call_id] = ""
        return [ToolCallStartChunk(call_id, name)]

    def _delta(self, call_id: str, fragment: str) -> list[StreamChunk]:
        if call_id not in self._open or not fragment:
            return []
        self._open[call_id] += fragment
        return [ToolCallDeltaChunk(call_id, fragment)]

    def _end(self, call_id: str) -> list[StreamChunk]:
        if self._open.pop(call_id, None) is None:
            return []
        return [ToolCallEndChunk(call_id)]

    def _close_open_calls(self) -> list[StreamChunk]:
        chunks: list[StreamChunk] = [ToolCallEndChunk(cid) for cid in self._open]
        self._open.clear()
        return chunks

    def arguments_for(self, call_id: str) -> Optional[str]:
        """Arguments accumulated so far for a still-open call."""
        return self._open.get(call_id)

    def finish(self) -> list[StreamChunk]:
        """Close every open tool call, then signal completion."""
        chunks = self._close_open_calls()
        chunks.append(DoneChunk())
        self._finished = True
        return chunks

    def fail(self, message: str) -> list[StreamChunk]:
        self._open.clear()
        self._finished = True
        return [ErrorChunk(message)]

    async def decode(self, lines: AsyncIterable[str]) -> AsyncGenerator[StreamChunk, None]:
        """Yield chunks for ``lines`` in arrival order until Done or Error."""
        async for line in lines:
            parsed = parse_sse_line(line)
            if parsed.kind is LineKind.EVENT and parsed.data is not None:
                try:
                    chunks = self.feed(parsed.data)
                except (AttributeError, TypeError, KeyError, IndexError) as exc:
                    # well-formed JSON of an unexpected shape is skipped like a malformed line
                    logger.debug("Skipping unexpected SSE event %r: %s", parsed.data, exc)
                    continue
            elif parsed.kind is LineKind.SENTINEL:
                chunks = self.on_sentinel()
            else:
                continue

            for chunk in chunks:
                yield chunk
            if self._finished:
                return

        # transport closed without a completion event
        if self._open:
            logger.warning(
                "Stream closed before completion; closing %d open tool call(s)",
                len(self._open),
            )
        else:
            logger.warning("Stream closed before completion")
        for chunk in self._close_open_calls():
            yield chunk
        self._finished = True


class ToolCallAccumulator:
    """Rebuilds finished tool calls from start/delta/end chunks.

    Buffers are keyed by call id, so interleaved fragments of several calls
    land in the right place. Calls are returned in start order.
    """

    def __init__(self) -> None:
        self._names: dict[str, str] = {}
        self._buffers: dict[str, list[str]] = {}
        self._closed: set[str] = set()

    def start(self, call_id: str, name: str) -> None:
        if call_id in self._names:
            return
        self._names[call_id] = name
        self._buffers[call_id] = []

    def delta(self, call_id: str, fragment: str) -> None:
        if call_id in self._closed or call_id not in self._buffers:
            logger.debug("Ignoring fragment for unknown or closed call %s", call_id)
            return
        self._buffers[call_id].append(fragment)

    def end(self, call_id: str) -> None:
        if call_id in self._names:
            self._closed.add(call_id)

    def feed(self, chunk: StreamChunk) -> None:
        if isinstance(chunk, ToolCallStartChunk):
            self.start(chunk.id, chunk.name)
        elif isinstance(chunk, ToolCallDeltaChunk):
            self.delta(chunk.id, chunk.args_fragment)
        elif isinstance(chunk, ToolCallEndChunk):
            self.end(chunk.id)

    def __bool__(self) -> bool:
        return bool(self._names)

    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=cid, name=name, arguments="".join(self._buffers[cid]))
            for cid, name in self._names.items()
        ]
