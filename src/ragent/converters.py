"""Output converters: format instructions plus strict parsers.

Each converter exposes ``format``, a directive to embed in the prompt, and
``convert``, which parses the completion text into the target shape or
raises :class:`FormatMismatchError`.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import FormatMismatchError

T = TypeVar("T")

_FENCE = re.compile(r"^```[A-Za-z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)
_BULLET = re.compile(r"^(?:[-*•+]|\d+[.)])\s+")


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block, if any."""
    stripped = text.strip()
    match = _FENCE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def _load_json(text: str) -> Any:
    try:
        return json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise FormatMismatchError(f"Invalid JSON ({e.msg})", text) from e


def _unknown_keys(data: Any, schema: dict[str, Any], defs: dict[str, Any], path: str = "$") -> list[str]:
    """Paths of object keys in ``data`` that ``schema`` does not declare."""
    ref = schema.get("$ref")
    if ref:
        schema = defs.get(ref.rsplit("/", 1)[-1], {})
    for combinator in ("anyOf", "oneOf"):
        if combinator in schema:
            branches = [_unknown_keys(data, s, defs, path) for s in schema[combinator]]
            return min(branches, key=len, default=[])

    found: list[str] = []
    for sub in schema.get("allOf", ()):
        found += _unknown_keys(data, sub, defs, path)

    if isinstance(data, dict):
        properties = schema.get("properties")
        extra = schema.get("additionalProperties")
        if properties is not None:
            for name, value in data.items():
                if name in properties:
                    found += _unknown_keys(value, properties[name], defs, f"{path}.{name}")
                elif isinstance(extra, dict):
                    found += _unknown_keys(value, extra, defs, f"{path}.{name}")
                elif not extra:
                    found.append(f"{path}.{name}")
        elif isinstance(extra, dict):
            for name, value in data.items():
                found += _unknown_keys(value, extra, defs, f"{path}.{name}")
    elif isinstance(data, list):
        prefix = schema.get("prefixItems") or []
        items = schema.get("items")
        for i, value in enumerate(data):
            if i < len(prefix):
                found += _unknown_keys(value, prefix[i], defs, f"{path}[{i}]")
            elif isinstance(items, dict):
                found += _unknown_keys(value, items, defs, f"{path}[{i}]")
    return found


class OutputConverter(ABC, Generic[T]):
    """Converts completion text into a structured value."""

    @property
    @abstractmethod
    def format(self) -> str:
        """Instruction telling the model how to shape its answer."""
        ...

    @abstractmethod
    def convert(self, text: str) -> T:
        """Parse completion text.

        Raises:
            FormatMismatchError: If the text does not fit the target shape.
        """
        ...


class ListOutputConverter(OutputConverter[list[str]]):
    """Parses a list of values.

    Accepts comma-separated values on one line, one value per line (with
    optional ``-``/``*``/numbered bullets), or a JSON array.
    """

    @property
    def format(self) -> str:
        return (
            "Your response should be a list of comma separated values\n"
            "eg: `foo, bar, baz`"
        )

    def convert(self, text: str) -> list[str]:
        body = strip_code_fence(text)
        if not body:
            raise FormatMismatchError("Expected a list, got empty text", text)

        if body.startswith("["):
            data = _load_json(body)
            if not isinstance(data, list):
                raise FormatMismatchError("Expected a JSON array", text)
            return [item if isinstance(item, str) else json.dumps(item) for item in data]

        lines = [line.strip() for line in body.splitlines() if line.strip()]
        if len(lines) > 1:
            items = [_BULLET.sub("", line).strip() for line in lines]
        else:
            items = [part.strip() for part in _BULLET.sub("", lines[0]).split(",")]

        if any(not item for item in items):
            raise FormatMismatchError("List contains empty items", text)
        return items


class MapOutputConverter(OutputConverter[dict[str, Any]]):
    """Parses a JSON object into a dict."""

    @property
    def format(self) -> str:
        return (
            "Your response should be in JSON format.\n"
            "The data structure for the JSON should be a single object with string keys.\n"
            "Do not include any explanations, only provide a RFC8259 compliant JSON "
            "response following this format without deviation.\n"
            "Remove the ```json markdown surrounding the output including the trailing \"```\"."
        )

    def convert(self, text: str) -> dict[str, Any]:
        data = _load_json(text)
        if not isinstance(data, dict):
            raise FormatMismatchError("Expected a JSON object", text)
        return data


class SchemaOutputConverter(OutputConverter[T]):
    """Parses JSON into a record type described by a schema.

    ``target`` can be a dataclass, a pydantic model or a TypedDict. The JSON
    schema is derived with pydantic and included in the format instruction;
    parsing validates in strict mode and rejects keys the schema does not
    declare, at any depth.
    """

    def __init__(self, target: type[T]) -> None:
        self.target = target
        self._adapter: TypeAdapter[T] = TypeAdapter(target)
        self.schema: dict[str, Any] = self._adapter.json_schema()

    @property
    def format(self) -> str:
        schema = json.dumps(self.schema, indent=2)
        return (
            "Your response should be in JSON format.\n"
            "Do not include any explanations, only provide a RFC8259 compliant JSON "
            "response following this format without deviation.\n"
            "Do not include markdown code blocks in your response.\n"
            "Remove the ```json markdown from the output.\n"
            "Here is the JSON Schema instance your output must adhere to:\n"
            f"```{schema}```"
        )

    def convert(self, text: str) -> T:
        body = strip_code_fence(text)
        data = _load_json(body)

        unknown = _unknown_keys(data, self.schema, self.schema.get("$defs", {}))
        if unknown:
            raise FormatMismatchError(f"Unexpected keys {unknown}", text)

        try:
            return self._adapter.validate_json(body, strict=True)
        except ValidationError as e:
            raise FormatMismatchError(
                f"Does not match {getattr(self.target, '__name__', self.target)} "
                f"({e.error_count()} errors)",
                text,
            ) from e
