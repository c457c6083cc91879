"""
Provider-neutral tool schema and tool outcomes.

Schemas are declared once here; each adapter wraps ``json_schema()`` in its
backend's own tool shape.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Union

__all__ = [
    "ParameterDefinition",
    "ToolDefinition",
    "ToolSuccess",
    "ToolFailure",
    "ToolResult",
]


@dataclass(frozen=True, slots=True)
class ParameterDefinition:
    type: str
    description: str
    required: bool = False
    enum_values: Optional[list[str]] = None


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Declarative description of a tool offered to the model."""
    name: str
    description: str
    parameters: dict[str, ParameterDefinition] = field(default_factory=dict)

    def json_schema(self) -> dict[str, Any]:
        """Return the JSON-schema object describing this tool's arguments."""
        properties: dict[str, Any] = {}
        for param_name, param in self.parameters.items():
            prop: dict[str, Any] = {
                "type": param.type,
                "description": param.description,
            }
            if param.enum_values:
                prop["enum"] = list(param.enum_values)
            properties[param_name] = prop

        return {
            "type": "object",
            "properties": properties,
            "required": [n for n, p in self.parameters.items() if p.required],
        }


@dataclass(frozen=True, slots=True)
class ToolSuccess:
    output: str


@dataclass(frozen=True, slots=True)
class ToolFailure:
    message: str


ToolResult = Union[ToolSuccess, ToolFailure]
