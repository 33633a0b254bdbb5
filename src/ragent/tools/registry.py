"""Registry of functions available to the model."""

import logging
from collections.abc import Iterable
from typing import Any

from ..errors import UnknownFunctionError
from .base import Tool, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for callable functions."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a function."""
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' already registered")
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> None:
        """Unregister a function by name."""
        if name in self._tools:
            del self._tools[name]

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def get_tools_schema(self) -> list[dict[str, Any]]:
        """Get declarations for all functions."""
        return [tool.get_schema() for tool in self._tools.values()]

    def scoped(self, names: Iterable[str] = (), extra: Iterable[Tool] = ()) -> "ToolRegistry":
        """Build a registry holding the named functions plus ``extra`` ones.

        Raises:
            UnknownFunctionError: If a name is not registered here.
        """
        scoped = ToolRegistry()
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                raise UnknownFunctionError(name)
            if scoped.get(name) is None:
                scoped.register(tool)
        for tool in extra:
            if scoped.get(tool.name) is None:
                scoped.register(tool)
        return scoped

    async def dispatch(self, tool_name: str, args: dict[str, Any]) -> ToolResult:
        """Dispatch a function call by name with arguments."""
        tool = self._tools.get(tool_name)

        if tool is None:
            return ToolResult(
                success=False,
                output="",
                error=f"Unknown tool: {tool_name}",
            )

        valid, error = tool.validate_args(args)
        if not valid:
            return ToolResult(
                success=False,
                output="",
                error=error,
            )

        try:
            return await tool.execute(**args)
        except Exception as e:
            logger.warning("Function %s raised: %s", tool_name, e)
            return ToolResult(
                success=False,
                output="",
                error=f"Tool execution failed: {e}",
            )
