from .chat import Message, Role, ToolCall
from .tool import (
    ParameterDefinition,
    ToolDefinition,
    ToolFailure,
    ToolResult,
    ToolSuccess,
)

__all__ = [
    "Message",
    "Role",
    "ToolCall",
    "ParameterDefinition",
    "ToolDefinition",
    "ToolFailure",
    "ToolResult",
    "ToolSuccess",
]
