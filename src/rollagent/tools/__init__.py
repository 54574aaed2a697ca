"""
Tools module for agent capabilities.
"""

from .base import Tool, ToolContext, ToolParameter, ToolResult
from .memory_tools import create_memory_tools
from .registry import ToolRegistry

__all__ = [
    "Tool",
    "ToolContext",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
    "create_memory_tools",
]
