"""Tests for SSE line parsing, the decoder base and tool-call accumulation."""

import pytest

from agent_bridge.stream import (
    DoneChunk,
    ErrorChunk,
    LineKind,
    StreamDecoder,
    TextChunk,
    ToolCallAccumulator,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallStartChunk,
    parse_sse_line,
)
from agent_bridge.types import ToolCall


async def _lines(*lines):
    for line in lines:
        yield line


async def _collect(decoder, *lines):
    return [chunk async for chunk in decoder.decode(_lines(*lines))]


class EchoDecoder(StreamDecoder):
    """Minimal decoder: {"text": ...}, {"start": [id, name]}, {"arg": [id, s]}, {"end": id}, {"stop": true}."""

    def feed(self, event):
        if "text" in event:
            return [TextChunk(event["text"])]
        if "start" in event:
            return self._start(*event["start"])
        if "arg" in event:
            return self._delta(*event["arg"])
        if "end" in event:
            return self._end(event["end"])
        if "stop" in event:
            return self.finish()
        if "boom" in event:
            return self.fail(event["boom"])
        return []


class TestParseSSELine:
    """Line classification."""

    @pytest.mark.parametrize(
        "line",
        ["", "event: message_start", ": keep-alive", "id: 7", "data:", "data:   "],
    )
    def test_ignored_lines(self, line):
        """Test lines that carry no event."""
        assert parse_sse_line(line).kind is LineKind.IGNORE

    def test_done_sentinel(self):
        """Test the [DONE] sentinel."""
        assert parse_sse_line("data: [DONE]").kind is LineKind.SENTINEL

    def test_event_payload(self):
        """Test a JSON object payload."""
        parsed = parse_sse_line('data: {"type": "ping"}')
        assert parsed.kind is LineKind.EVENT
        assert parsed.data == {"type": "ping"}

    def test_prefix_without_space(self):
        """Test a data prefix without a following space."""
        parsed = parse_sse_line('data:{"a":1}')
        assert parsed.kind is LineKind.EVENT
        assert parsed.data == {"a": 1}

    @pytest.mark.parametrize("line", ["data: {not json", "data: [1, 2]", 'data: "text"'])
    def test_malformed_or_non_object_payload_is_skipped(self, line):
        """Test payloads that are skipped."""
        parsed = parse_sse_line(line)
        assert parsed.kind is LineKind.SKIP
        assert parsed.data is None


class TestStreamDecoder:
    @pytest.mark.asyncio
    async def test_malformed_line_does_not_abort_stream(self):
        """Test that a malformed line does not abort the stream."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"text": "Hel"}',
            "data: {garbage",
            "",
            'data: {"text": "lo"}',
            "data: [DONE]",
        )
        assert chunks == [TextChunk("Hel"), TextChunk("lo"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_done_closes_open_calls_first(self):
        """Test that completion ends open calls before Done."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"start": ["a", "read_file"]}',
            'data: {"arg": ["a", "{}"]}',
            'data: {"start": ["b", "list_files"]}',
            'data: {"stop": true}',
        )
        assert chunks == [
            ToolCallStartChunk("a", "read_file"),
            ToolCallDeltaChunk("a", "{}"),
            ToolCallStartChunk("b", "list_files"),
            ToolCallEndChunk("a"),
            ToolCallEndChunk("b"),
            DoneChunk(),
        ]

    @pytest.mark.asyncio
    async def test_end_is_emitted_once_per_call(self):
        """Test that each call is ended once."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"start": ["a", "t"]}',
            'data: {"end": "a"}',
            'data: {"end": "a"}',
            "data: [DONE]",
        )
        assert chunks.count(ToolCallEndChunk("a")) == 1
        assert chunks[-1] == DoneChunk()

    @pytest.mark.asyncio
    async def test_nothing_after_done(self):
        """Test that nothing is emitted after Done."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"text": "x"}',
            "data: [DONE]",
            'data: {"text": "late"}',
        )
        assert chunks == [TextChunk("x"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_error_ends_stream(self):
        """Test that an error ends the stream."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"start": ["a", "t"]}',
            'data: {"boom": "Stream error: overloaded"}',
            'data: {"text": "late"}',
        )
        assert chunks == [ToolCallStartChunk("a", "t"), ErrorChunk("Stream error: overloaded")]

    @pytest.mark.asyncio
    async def test_premature_close_ends_open_calls_without_done(self):
        """Test a transport that closes before completion."""
        decoder = EchoDecoder()
        chunks = await _collect(
            decoder,
            'data: {"start": ["a", "t"]}',
            'data: {"arg": ["a", "{\\"x\\": 1}"]}',
        )
        assert chunks == [
            ToolCallStartChunk("a", "t"),
            ToolCallDeltaChunk("a", '{"x": 1}'),
            ToolCallEndChunk("a"),
        ]
        assert DoneChunk() not in chunks
        assert decoder.finished

    def test_arguments_for_open_call(self):
        """Test reading accumulated arguments of an open call."""
        decoder = EchoDecoder()
        decoder.feed({"start": ["a", "t"]})
        decoder.feed({"arg": ["a", '{"p']})
        decoder.feed({"arg": ["a", 'ath": "src"}']})

        assert decoder.arguments_for("a") == '{"path": "src"}'
        assert decoder.arguments_for("missing") is None

    @pytest.mark.asyncio
    async def test_interleaved_calls_keep_start_delta_end_order(self):
        """Test start A, delta A, start B, delta B, delta A, end B, end A, done."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"start": ["A", "read_file"]}',
            'data: {"arg": ["A", "{\\"path\\": "]}',
            'data: {"start": ["B", "list_files"]}',
            'data: {"arg": ["B", "{}"]}',
            'data: {"arg": ["A", "\\"a.txt\\"}"]}',
            'data: {"end": "B"}',
            'data: {"arg": ["B", "late"]}',
            'data: {"end": "A"}',
            "data: [DONE]",
        )
        assert chunks == [
            ToolCallStartChunk("A", "read_file"),
            ToolCallDeltaChunk("A", '{"path": '),
            ToolCallStartChunk("B", "list_files"),
            ToolCallDeltaChunk("B", "{}"),
            ToolCallDeltaChunk("A", '"a.txt"}'),
            ToolCallEndChunk("B"),
            ToolCallEndChunk("A"),
            DoneChunk(),
        ]

        acc = ToolCallAccumulator()
        for chunk in chunks:
            acc.feed(chunk)
        assert acc.tool_calls() == [
            ToolCall("A", "read_file", '{"path": "a.txt"}'),
            ToolCall("B", "list_files", "{}"),
        ]

    @pytest.mark.asyncio
    async def test_event_of_unexpected_shape_is_skipped(self):
        """Test that an event the decoder cannot read does not abort the stream."""
        chunks = await _collect(
            EchoDecoder(),
            'data: {"arg": 5}',
            'data: {"text": "ok"}',
            "data: [DONE]",
        )
        assert chunks == [TextChunk("ok"), DoneChunk()]


class TestToolCallAccumulator:
    def test_interleaved_calls_are_reassembled(self):
        """start A, delta A, start B, delta B, delta A, end B, end A, done."""
        acc = ToolCallAccumulator()
        for chunk in [
            ToolCallStartChunk("A", "read_file"),
            ToolCallDeltaChunk("A", '{"path": '),
            ToolCallStartChunk("B", "list_files"),
            ToolCallDeltaChunk("B", '{"path": "src"}'),
            ToolCallDeltaChunk("A", '"a.txt"}'),
            ToolCallEndChunk("B"),
            ToolCallEndChunk("A"),
            DoneChunk(),
        ]:
            acc.feed(chunk)

        assert acc.tool_calls() == [
            ToolCall("A", "read_file", '{"path": "a.txt"}'),
            ToolCall("B", "list_files", '{"path": "src"}'),
        ]

    def test_empty_accumulator_is_falsy(self):
        """Test truthiness of the accumulator."""
        acc = ToolCallAccumulator()
        assert not acc
        acc.feed(TextChunk("hi"))
        assert not acc
        acc.start("c1", "t")
        assert acc

    def test_fragments_after_end_or_for_unknown_ids_are_ignored(self):
        """Test that stray fragments are ignored."""
        acc = ToolCallAccumulator()
        acc.start("c1", "t")
        acc.delta("c1", "{}")
        acc.end("c1")
        acc.delta("c1", "junk")
        acc.delta("nope", "junk")

        assert acc.tool_calls() == [ToolCall("c1", "t", "{}")]

    def test_call_without_arguments(self):
        """Test a call that never received arguments."""
        acc = ToolCallAccumulator()
        acc.start("c1", "get_time")
        acc.end("c1")

        call = acc.tool_calls()[0]
        assert call.arguments == ""
        assert call.parsed_arguments() == {}
