"""Base interface for functions the model may call."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

_JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


@dataclass
class ToolResult:
    """Result from a function execution."""

    success: bool
    output: str
    error: str | None = None
    metadata: dict[str, Any] | None = None

    def to_message_content(self, tool_name: str) -> str:
        """Text fed back to the model as the tool response."""
        if self.success:
            return self.output
        return f"[{tool_name}] Error: {self.error}"


class Tool(ABC):
    """Base interface for all callable functions."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique function name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Function description for the model."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for function parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the function with given arguments."""
        ...

    def get_schema(self) -> dict[str, Any]:
        """Get the declaration sent with a completion request."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """Validate arguments against schema. Returns (valid, error_message)."""
        required = self.parameters.get("required", [])
        properties = self.parameters.get("properties", {})

        for field in required:
            if field not in args:
                return False, f"Missing required argument: {field}"

        for key, value in args.items():
            if key not in properties:
                continue
            expected_type = properties[key].get("type")
            python_type = _JSON_TYPES.get(expected_type)
            if python_type is None:
                continue
            # bool is an int subclass; keep them apart
            if expected_type in ("integer", "number") and isinstance(value, bool):
                return False, f"Argument '{key}' must be {expected_type}"
            if not isinstance(value, python_type):
                return False, f"Argument '{key}' must be {expected_type}"

        return True, None
