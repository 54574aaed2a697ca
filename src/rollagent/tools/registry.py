"""
Tool registry for managing available tools.

Registries are plain instances passed into the agent, so tests and
concurrent configurations never share tool state.
"""

from typing import Any

import structlog

from ..exceptions import ToolNotFoundError
from ..llm.base import ToolDefinition
from .base import Tool, ToolContext, ToolResult

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self, tools: list[Tool] | None = None):
        self._tools: dict[str, Tool] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool, replacing any tool with the same name."""
        if tool.name in self._tools:
            logger.warning("Replacing registered tool", tool_name=tool.name)
        self._tools[tool.name] = tool
        logger.info("Tool registered", tool_name=tool.name)

    def register_all(self, tools: list[Tool]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.info("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Tool | None:
        """Get a tool by name."""
        return self._tools.get(name)

    def resolve(self, name: str) -> Tool:
        """Get a tool by name or raise ToolNotFoundError."""
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)
        return tool

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for the LLM."""
        definitions = []
        for tool in self._tools.values():
            definitions.append(ToolDefinition(
                name=tool.name,
                description=tool.description,
                parameters=tool.get_parameters_schema(),
            ))
        return definitions

    async def execute(
        self,
        name: str,
        arguments: dict[str, Any],
        context: ToolContext | None = None,
    ) -> ToolResult:
        """Execute a tool by name.

        Failures never raise: an unknown tool or an exception inside the
        tool comes back as an unsuccessful ToolResult so the model can adapt.
        """
        try:
            tool = self.resolve(name)
        except ToolNotFoundError as e:
            logger.warning("Unknown tool requested", tool_name=name)
            return ToolResult(success=False, error=str(e))

        arguments = dict(arguments)
        if "context" in arguments:
            logger.warning("Dropping reserved 'context' argument", tool_name=name)
            arguments.pop("context")

        try:
            logger.info("Executing tool", tool_name=name, arguments=arguments)
            result = await tool.execute(context=context, **arguments)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return ToolResult(success=False, error=f"{type(e).__name__}: {e}")
