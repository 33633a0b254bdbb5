"""Messages, media attachments, options and the immutable Prompt."""

from __future__ import annotations

import base64
import mimetypes
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..tools import Tool


class Role(Enum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Media:
    """An image attached to a message, either inline bytes or a URL."""

    mime_type: str
    data: bytes | None = None
    url: str | None = None

    def __post_init__(self) -> None:
        if (self.data is None) == (self.url is None):
            raise ValueError("Media needs exactly one of 'data' or 'url'")

    @classmethod
    def from_path(cls, path: Path | str, mime_type: str | None = None) -> Media:
        """Read an image file, guessing its MIME type from the extension."""
        path = Path(path)
        if mime_type is None:
            mime_type, _ = mimetypes.guess_type(path.name)
        if mime_type is None:
            raise ValueError(f"Cannot determine MIME type of {path}")
        return cls(mime_type=mime_type, data=path.read_bytes())

    def to_url(self) -> str:
        """URL form accepted by the completion API (data: URL for inline bytes)."""
        if self.url is not None:
            return self.url
        assert self.data is not None
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class ToolCall:
    """A function call requested by the model."""

    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class Message:
    """A single chat message."""

    role: Role
    content: str = ""
    media: tuple[Media, ...] = ()
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render in the chat-completions wire shape."""
        data: dict[str, Any] = {"role": self.role.value}

        if self.media:
            parts: list[dict[str, Any]] = []
            if self.content:
                parts.append({"type": "text", "text": self.content})
            parts.extend(
                {"type": "image_url", "image_url": {"url": m.to_url()}} for m in self.media
            )
            data["content"] = parts
        elif self.role == Role.ASSISTANT and self.tool_calls and not self.content:
            data["content"] = None
        else:
            data["content"] = self.content

        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        if self.name is not None:
            data["name"] = self.name
        return data


def system_message(content: str) -> Message:
    return Message(Role.SYSTEM, content)


def user_message(content: str, media: list[Media] | tuple[Media, ...] = ()) -> Message:
    return Message(Role.USER, content, media=tuple(media))


def assistant_message(content: str) -> Message:
    return Message(Role.ASSISTANT, content)


@dataclass(frozen=True)
class ChatOptions:
    """Model selection and sampling options.

    Attributes:
        model: Model identifier; None falls back to the client default.
        temperature: Sampling temperature.
        top_p: Nucleus sampling cut-off.
        max_tokens: Completion length limit.
        stop: Stop sequences.
        functions: Tools declared for this request only.
        function_names: Names of tools, registered on the client, to enable.
    """

    model: str | None = None
    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop: tuple[str, ...] | None = None
    functions: tuple[Tool, ...] = ()
    function_names: tuple[str, ...] = ()

    def merge(self, override: ChatOptions | None) -> ChatOptions:
        """Return options where fields set on ``override`` win."""
        if override is None:
            return self
        return ChatOptions(
            model=override.model or self.model,
            temperature=override.temperature if override.temperature is not None else self.temperature,
            top_p=override.top_p if override.top_p is not None else self.top_p,
            max_tokens=override.max_tokens if override.max_tokens is not None else self.max_tokens,
            stop=override.stop if override.stop is not None else self.stop,
            functions=self.functions + override.functions,
            function_names=self.function_names + override.function_names,
        )

    def sampling_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for the completions API, omitting unset values."""
        kwargs: dict[str, Any] = {}
        if self.temperature is not None:
            kwargs["temperature"] = self.temperature
        if self.top_p is not None:
            kwargs["top_p"] = self.top_p
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        if self.stop:
            kwargs["stop"] = list(self.stop)
        return kwargs


@dataclass(frozen=True)
class Prompt:
    """Ordered, immutable sequence of messages plus request options."""

    messages: tuple[Message, ...] = ()
    options: ChatOptions | None = None

    @classmethod
    def of(cls, content: str | Message | list[Message], options: ChatOptions | None = None) -> Prompt:
        """Build a prompt from text (a single user message) or messages."""
        if isinstance(content, str):
            return cls((user_message(content),), options)
        if isinstance(content, Message):
            return cls((content,), options)
        return cls(tuple(content), options)

    def with_messages(self, messages: list[Message] | tuple[Message, ...]) -> Prompt:
        return replace(self, messages=tuple(messages))

    def with_options(self, options: ChatOptions | None) -> Prompt:
        return replace(self, options=options)

    def append(self, *messages: Message) -> Prompt:
        return replace(self, messages=self.messages + messages)

    @property
    def system_message(self) -> Message | None:
        """First system message, if any."""
        for message in self.messages:
            if message.role == Role.SYSTEM:
                return message
        return None

    @property
    def last_user_message(self) -> Message | None:
        for message in reversed(self.messages):
            if message.role == Role.USER:
                return message
        return None

    @property
    def user_text(self) -> str:
        """Text of the last user message, empty when there is none."""
        message = self.last_user_message
        return message.content if message else ""

    def replace_message(self, old: Message, new: Message) -> Prompt:
        """Swap the last occurrence of ``old`` (by identity or equality) with ``new``."""
        messages = list(self.messages)
        for i in range(len(messages) - 1, -1, -1):
            if messages[i] is old or messages[i] == old:
                messages[i] = new
                return replace(self, messages=tuple(messages))
        raise ValueError("Message not part of prompt")

    def to_dicts(self) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self.messages]

