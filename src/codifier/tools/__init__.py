"""MCP tool definitions and handlers."""

from .definitions import TOOL_NAMES, TOOLS
from .handlers import HANDLERS, ToolContext, handle_tool

__all__ = ["TOOLS", "TOOL_NAMES", "HANDLERS", "ToolContext", "handle_tool"]
