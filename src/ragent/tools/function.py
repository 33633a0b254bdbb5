"""Wrap plain Python callables as functions the model can call.

Example:
    @dataclass
    class WeatherRequest:
        location: str
        unit: str = "C"

    def current_weather(request: WeatherRequest) -> dict:
        return {"temp": 30.0, "unit": request.unit}

    tool = FunctionTool(
        current_weather,
        name="getCurrentWeather",
        description="Get the weather in location",
        input_type=WeatherRequest,
        response_converter=lambda r: f"{r['temp']}{r['unit']}",
    )
"""

import inspect
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .base import Tool, ToolResult

_ANNOTATION_TYPES: dict[Any, str] = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    dict: "object",
}


def _signature_schema(fn: Callable[..., Any]) -> dict[str, Any]:
    """Derive a JSON schema from simple keyword parameters."""
    properties: dict[str, Any] = {}
    required: list[str] = []
    for param in inspect.signature(fn).parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        prop: dict[str, Any] = {}
        json_type = _ANNOTATION_TYPES.get(param.annotation)
        if json_type:
            prop["type"] = json_type
        properties[param.name] = prop
        if param.default is param.empty:
            required.append(param.name)
    return {"type": "object", "properties": properties, "required": required}


def _default_converter(value: Any) -> str:
    if isinstance(value, str):
        return value
    return TypeAdapter(type(value)).dump_json(value).decode("utf-8")


class FunctionTool(Tool):
    """A Tool backed by a sync or async callable.

    Args:
        fn: The callable to run.
        name: Function name exposed to the model; defaults to ``fn.__name__``.
        description: Description exposed to the model; defaults to the docstring.
        input_type: Optional dataclass or pydantic model. When given, the
            model's arguments are validated into one instance which is passed
            as the single positional argument.
        parameters: Explicit JSON schema, overriding any derived one.
        response_converter: Turns the return value into the text sent back
            to the model. Defaults to JSON for non-string values.
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        name: str | None = None,
        description: str | None = None,
        input_type: type | None = None,
        parameters: dict[str, Any] | None = None,
        response_converter: Callable[[Any], str] | None = None,
    ) -> None:
        self.fn = fn
        self._name = name or fn.__name__
        self._description = description or inspect.getdoc(fn) or self._name
        self._adapter = TypeAdapter(input_type) if input_type is not None else None
        if parameters is not None:
            self._parameters = parameters
        elif self._adapter is not None:
            self._parameters = self._adapter.json_schema()
        else:
            self._parameters = _signature_schema(fn)
        self.response_converter = response_converter or _default_converter

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def parameters(self) -> dict[str, Any]:
        return self._parameters

    async def execute(self, **kwargs: Any) -> ToolResult:
        if self._adapter is not None:
            try:
                request = self._adapter.validate_python(kwargs)
            except ValidationError as e:
                return ToolResult(success=False, output="", error=f"Invalid arguments: {e}")
            value = self.fn(request)
        else:
            value = self.fn(**kwargs)

        if inspect.isawaitable(value):
            value = await value

        return ToolResult(success=True, output=self.response_converter(value))
