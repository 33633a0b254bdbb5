"""Functions the model may call during a completion."""

from .base import Tool, ToolResult
from .function import FunctionTool
from .registry import ToolRegistry

__all__ = [
    "FunctionTool",
    "Tool",
    "ToolRegistry",
    "ToolResult",
]
