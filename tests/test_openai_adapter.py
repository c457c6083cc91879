"""Tests for the OpenAI Chat Completions adapter and stream decoder."""

import json

import pytest

from agent_bridge.adapters.openai import OpenAIRequestAdapter, OpenAIStreamDecoder
from agent_bridge.response import ErrorReply, TextReply, ToolUseReply
from agent_bridge.stream import (
    DoneChunk,
    ErrorChunk,
    TextChunk,
    ToolCallAccumulator,
    ToolCallDeltaChunk,
    ToolCallEndChunk,
    ToolCallStartChunk,
)
from agent_bridge.types import Message, ParameterDefinition, ToolCall, ToolDefinition


def _chunk(delta):
    return "data: " + json.dumps(
        {"id": "chatcmpl-1", "object": "chat.completion.chunk", "choices": [{"index": 0, "delta": delta}]}
    )


def _fragment(index, *, id=None, name=None, arguments=None):
    fragment = {"index": index}
    function = {}
    if id is not None:
        fragment["id"] = id
        fragment["type"] = "function"
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    if function:
        fragment["function"] = function
    return fragment


async def _decode(lines):
    async def source():
        for line in lines:
            yield line

    return [chunk async for chunk in OpenAIStreamDecoder().decode(source())]


class TestToProvider:
    def _build(self, messages, tools=(), model="gpt-4o-mini"):
        return OpenAIRequestAdapter().to_provider(
            messages, tools, model=model, max_tokens=100, temperature=0.7, stream=True
        )

    def test_basic_request(self):
        """Test basic to_provider functionality."""
        request = self._build([Message.system("You are helpful"), Message.user("Hello")])

        assert request["model"] == "gpt-4o-mini"
        assert request["max_tokens"] == 100
        assert request["temperature"] == 0.7
        assert request["stream"] is True
        assert request["messages"] == [
            {"role": "system", "content": "You are helpful"},
            {"role": "user", "content": "Hello"},
        ]
        assert "tools" not in request

    @pytest.mark.parametrize("model", ["gpt-5-mini", "o1-preview", "o3-mini"])
    def test_reasoning_models_use_max_completion_tokens(self, model):
        """Test the max_completion_tokens switch for reasoning models."""
        request = self._build([Message.user("hi")], model=model)
        assert request["max_completion_tokens"] == 100
        assert "max_tokens" not in request

    def test_tool_calls_and_results(self):
        """Test assistant tool_calls and tool result conversion."""
        call = ToolCall("call_1", "list_files", '{"path": "src"}')
        request = self._build(
            [Message.assistant_tool_calls([call]), Message.tool_result("call_1", "a.txt")]
        )

        assert request["messages"] == [
            {
                "role": "assistant",
                "content": None,
                "tool_calls": [
                    {
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "list_files", "arguments": '{"path": "src"}'},
                    }
                ],
            },
            {"role": "tool", "content": "a.txt", "tool_call_id": "call_1"},
        ]

    def test_tools_are_wrapped_as_functions(self):
        """Test tool schema translation to function tools."""
        tool = ToolDefinition(
            "search",
            "Search code",
            {
                "query": ParameterDefinition("string", "Pattern", required=True),
                "mode": ParameterDefinition("string", "Match mode", enum_values=["regex", "literal"]),
            },
        )
        request = self._build([Message.user("hi")], [tool])

        assert request["tools"] == [
            {
                "type": "function",
                "function": {
                    "name": "search",
                    "description": "Search code",
                    "parameters": {
                        "type": "object",
                        "properties": {
                            "query": {"type": "string", "description": "Pattern"},
                            "mode": {
                                "type": "string",
                                "description": "Match mode",
                                "enum": ["regex", "literal"],
                            },
                        },
                        "required": ["query"],
                    },
                },
            }
        ]


class TestFromProvider:
    def test_text_response(self):
        """Test a plain text completion."""
        raw = {"choices": [{"message": {"role": "assistant", "content": "Hi!"}}]}
        assert OpenAIRequestAdapter().from_provider(raw) == TextReply("Hi!")

    def test_null_content_is_empty_text(self):
        """Test that null content becomes empty text."""
        raw = {"choices": [{"message": {"role": "assistant", "content": None}}]}
        assert OpenAIRequestAdapter().from_provider(raw) == TextReply("")

    def test_tool_calls(self):
        """Test tool call extraction with default arguments."""
        raw = {
            "choices": [
                {
                    "message": {
                        "role": "assistant",
                        "content": None,
                        "tool_calls": [
                            {"id": "call_1", "type": "function", "function": {"name": "list_files", "arguments": '{"path": "src"}'}},
                            {"id": "call_2", "type": "function", "function": {"name": "get_time", "arguments": ""}},
                        ],
                    }
                }
            ]
        }
        response = OpenAIRequestAdapter().from_provider(raw)

        assert isinstance(response, ToolUseReply)
        assert response.tool_calls == (
            ToolCall("call_1", "list_files", '{"path": "src"}'),
            ToolCall("call_2", "get_time", "{}"),
        )

    def test_no_choices(self):
        """Test a response without choices."""
        assert OpenAIRequestAdapter().from_provider({"choices": []}) == ErrorReply(
            "No choices in response", code="DecodeError"
        )

    def test_no_message(self):
        """Test a choice without a message."""
        response = OpenAIRequestAdapter().from_provider({"choices": [{"index": 0}]})
        assert isinstance(response, ErrorReply)
        assert response.message == "No message in choice"


class TestStreamDecoder:
    @pytest.mark.asyncio
    async def test_text_stream(self):
        """Test decoding a plain text stream."""
        chunks = await _decode(
            [
                _chunk({"role": "assistant", "content": ""}),
                "",
                _chunk({"content": "Hel"}),
                _chunk({"content": "lo"}),
                ": keep-alive",
                "data: [DONE]",
            ]
        )
        assert chunks == [TextChunk("Hel"), TextChunk("lo"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_interleaved_indices_are_correlated(self):
        """Test correlation of interleaved tool-call indices."""
        chunks = await _decode(
            [
                _chunk({"tool_calls": [_fragment(0, id="call_A", name="read_file", arguments="")]}),
                _chunk({"tool_calls": [_fragment(0, arguments='{"path": ')]}),
                _chunk({"tool_calls": [_fragment(1, id="call_B", name="list_files")]}),
                _chunk({"tool_calls": [_fragment(1, arguments='{"path": "src"}')]}),
                _chunk({"tool_calls": [_fragment(0, arguments='"a.txt"}')]}),
                "data: [DONE]",
            ]
        )
        assert chunks == [
            ToolCallStartChunk("call_A", "read_file"),
            ToolCallDeltaChunk("call_A", '{"path": '),
            ToolCallStartChunk("call_B", "list_files"),
            ToolCallDeltaChunk("call_B", '{"path": "src"}'),
            ToolCallDeltaChunk("call_A", '"a.txt"}'),
            ToolCallEndChunk("call_A"),
            ToolCallEndChunk("call_B"),
            DoneChunk(),
        ]

        acc = ToolCallAccumulator()
        for chunk in chunks:
            acc.feed(chunk)
        assert acc.tool_calls() == [
            ToolCall("call_A", "read_file", '{"path": "a.txt"}'),
            ToolCall("call_B", "list_files", '{"path": "src"}'),
        ]

    @pytest.mark.asyncio
    async def test_fragment_with_id_is_routed_by_id(self):
        """Test that a fragment carrying an id is routed by that id."""
        chunks = await _decode(
            [
                _chunk({"tool_calls": [_fragment(0, id="call_A", name="t", arguments='{"a"')]}),
                _chunk({"tool_calls": [_fragment(0, id="call_A", arguments=": 1}")]}),
                "data: [DONE]",
            ]
        )
        assert chunks == [
            ToolCallStartChunk("call_A", "t"),
            ToolCallDeltaChunk("call_A", '{"a"'),
            ToolCallDeltaChunk("call_A", ": 1}"),
            ToolCallEndChunk("call_A"),
            DoneChunk(),
        ]

    @pytest.mark.asyncio
    async def test_unbound_index_is_dropped(self):
        """Test that fragments for an unbound index are dropped."""
        chunks = await _decode(
            [
                _chunk({"tool_calls": [_fragment(3, arguments="{}")]}),
                _chunk({"content": "ok"}),
                "data: [DONE]",
            ]
        )
        assert chunks == [TextChunk("ok"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_malformed_chunk_is_skipped(self):
        """Test that an unparseable chunk is skipped."""
        chunks = await _decode(
            [_chunk({"content": "a"}), "data: {truncated", _chunk({"content": "b"}), "data: [DONE]"]
        )
        assert chunks == [TextChunk("a"), TextChunk("b"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_unexpected_choice_shape_is_skipped(self):
        """Test that a choice that is not an object does not end the stream."""
        chunks = await _decode(['data: {"choices": ["oops"]}', _chunk({"content": "ok"}), "data: [DONE]"])
        assert chunks == [TextChunk("ok"), DoneChunk()]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"choices": [{"index": 0, "delta": "oops"}]},
            {"choices": [{"index": 0, "delta": {"tool_calls": ["oops"]}}]},
            {"choices": [{"index": 0, "delta": {"tool_calls": {"index": 0}}}]},
            {"choices": [{"index": 0, "delta": {"tool_calls": [{"index": 0, "function": "oops"}]}}]},
            {"choices": [{"index": 0, "delta": {"content": 42}}]},
            {"choices": "oops"},
        ],
    )
    async def test_unexpected_delta_shapes_are_skipped(self, payload):
        """Test deltas and fragments of the wrong type."""
        chunks = await _decode(["data: " + json.dumps(payload), _chunk({"content": "ok"}), "data: [DONE]"])
        assert chunks == [TextChunk("ok"), DoneChunk()]

    @pytest.mark.asyncio
    async def test_non_integer_index_is_not_bound(self):
        """Test that a fragment with a list index is routed by id only."""
        chunks = await _decode(
            [
                _chunk({"tool_calls": [_fragment([0], id="call_A", name="t", arguments='{"a"')]}),
                _chunk({"tool_calls": [_fragment([0], arguments=": 1}")]}),
                _chunk({"tool_calls": [_fragment(0, id="call_A", arguments=": 1}")]}),
                "data: [DONE]",
            ]
        )
        assert chunks == [
            ToolCallStartChunk("call_A", "t"),
            ToolCallDeltaChunk("call_A", '{"a"'),
            ToolCallDeltaChunk("call_A", ": 1}"),
            ToolCallEndChunk("call_A"),
            DoneChunk(),
        ]

    @pytest.mark.asyncio
    async def test_error_payload(self):
        """Test that an error payload ends the stream."""
        chunks = await _decode(
            ['data: {"error": {"message": "Internal server error", "type": "server_error"}}']
        )
        assert chunks == [ErrorChunk("Stream error: Internal server error")]
