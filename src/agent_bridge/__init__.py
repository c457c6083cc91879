"""
Agent Bridge - tool-calling agent loop over streaming OpenAI and Anthropic backends.
"""
import logging

from .agent import Agent, AgentState
from .config import AgentSettings
from .conversation import Conversation, MAX_TOOL_RESULT_LENGTH
from .errors import (
    AgentBridgeError,
    DecodeError,
    LoopLimitError,
    ToolError,
    TransportError,
)
from .events import (
    AgentEvent,
    Done,
    Error,
    TextDelta,
    TextResponse,
    Thinking,
    ToolCallResult,
    ToolCallStart,
)
from .factory import create_llm, is_configured
from .provider import Provider, get_api_key
from .providers import AnthropicLLM, BaseAsyncLLM, OpenAILLM
from .response import ChatResponse, ErrorReply, TextReply, ToolUseReply
from .session import AgentSession
from .tools import ToolDispatch, ToolRegistry
from .types import Message, ParameterDefinition, Role, ToolCall, ToolDefinition, ToolFailure, ToolSuccess

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Agent",
    "AgentState",
    "AgentSession",
    "AgentSettings",
    "Conversation",
    "MAX_TOOL_RESULT_LENGTH",
    "AgentBridgeError",
    "DecodeError",
    "LoopLimitError",
    "ToolError",
    "TransportError",
    "AgentEvent",
    "Done",
    "Error",
    "TextDelta",
    "TextResponse",
    "Thinking",
    "ToolCallResult",
    "ToolCallStart",
    "create_llm",
    "is_configured",
    "Provider",
    "get_api_key",
    "AnthropicLLM",
    "BaseAsyncLLM",
    "OpenAILLM",
    "ChatResponse",
    "ErrorReply",
    "TextReply",
    "ToolUseReply",
    "ToolDispatch",
    "ToolRegistry",
    "Message",
    "ParameterDefinition",
    "Role",
    "ToolCall",
    "ToolDefinition",
    "ToolFailure",
    "ToolSuccess",
]
