"""Tool definitions exposed by the README service."""

from .definitions import TOOL_DEFINITIONS, ToolCallRequest, ToolDefinition

__all__ = ["TOOL_DEFINITIONS", "ToolCallRequest", "ToolDefinition"]
