"""
Base classes for tools.
"""

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine


@dataclass
class ToolResult:
    """Result from a tool execution."""

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None

    def render(self) -> str:
        """Serialize for the transcript: text passes through, data is JSON."""
        if not self.success:
            return f"Error: {self.error or 'tool failed'}"
        if self.output:
            return self.output
        if self.data is None:
            return ""
        if isinstance(self.data, str):
            return self.data
        return json.dumps(self.data, ensure_ascii=False, default=str)


@dataclass
class ToolContext:
    """Ambient context resolved at invocation time.

    Passed alongside the model's arguments, never inside the declared schema,
    so transport concerns like the session id stay out of the tool contract.
    """

    session_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, number, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None
    items: dict[str, Any] | None = None


def _accepts_context(handler: Callable[..., Any]) -> bool:
    try:
        return "context" in inspect.signature(handler).parameters
    except (TypeError, ValueError):
        return False


@dataclass
class Tool:
    """
    Simple tool wrapper that can be created from a function.

    A handler that declares a ``context`` parameter receives the ambient
    ``ToolContext``; other handlers only see the model's arguments.
    """

    name: str
    description: str
    parameters: list[ToolParameter]
    handler: Callable[..., Coroutine[Any, Any, ToolResult]]

    def get_parameters_schema(self) -> dict[str, Any]:
        """Convert parameters to JSON Schema format."""
        properties = {}
        required = []

        for param in self.parameters:
            prop: dict[str, Any] = {
                "type": param.param_type,
                "description": param.description,
            }
            if param.enum:
                prop["enum"] = param.enum
            if param.items:
                prop["items"] = param.items
            if param.default is not None:
                prop["default"] = param.default

            properties[param.name] = prop

            if param.required:
                required.append(param.name)

        return {
            "type": "object",
            "properties": properties,
            "required": required,
        }

    async def execute(self, context: ToolContext | None = None, **kwargs: Any) -> ToolResult:
        """Execute the tool handler."""
        if _accepts_context(self.handler):
            return await self.handler(context=context or ToolContext(), **kwargs)
        return await self.handler(**kwargs)
