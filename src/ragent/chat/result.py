"""Completion results returned by the chat client."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any

from ..prompt import Message, Role, ToolCall


@dataclass(frozen=True)
class Usage:
    """Token usage reported by the completion service."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_api(cls, usage: Any) -> Usage | None:
        if usage is None:
            return None
        return cls(
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
        )

    def __add__(self, other: Usage | None) -> Usage:
        if other is None:
            return self
        return Usage(
            self.prompt_tokens + other.prompt_tokens,
            self.completion_tokens + other.completion_tokens,
            self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class Generation:
    """One generated message and the reason generation stopped."""

    message: Message
    finish_reason: str | None = None

    @property
    def text(self) -> str:
        return self.message.content


def message_from_api(message: Any) -> Message:
    """Convert an API message object into a Message."""
    tool_calls = tuple(
        ToolCall(
            id=tc.id,
            name=tc.function.name,
            arguments=tc.function.arguments or "{}",
        )
        for tc in (message.tool_calls or [])
    )
    return Message(Role.ASSISTANT, message.content or "", tool_calls=tool_calls)


@dataclass(frozen=True)
class CompletionResult:
    """The model's generated message(s) plus metadata.

    For streamed completions each chunk is itself a CompletionResult holding
    the text delta; :meth:`concat` joins chunks back into one result.
    """

    generations: tuple[Generation, ...]
    usage: Usage | None = None
    model: str | None = None
    id: str | None = None

    @property
    def result(self) -> Generation:
        """First generation."""
        if not self.generations:
            raise ValueError("Completion has no generations")
        return self.generations[0]

    @property
    def text(self) -> str:
        return self.result.text if self.generations else ""

    @property
    def finish_reason(self) -> str | None:
        return self.result.finish_reason if self.generations else None

    @classmethod
    def from_response(cls, response: Any) -> CompletionResult:
        generations = tuple(
            Generation(message_from_api(choice.message), choice.finish_reason)
            for choice in response.choices
        )
        return cls(
            generations=generations,
            usage=Usage.from_api(getattr(response, "usage", None)),
            model=getattr(response, "model", None),
            id=getattr(response, "id", None),
        )

    @classmethod
    def chunk(cls, text: str, finish_reason: str | None = None, **meta: Any) -> CompletionResult:
        return cls((Generation(Message(Role.ASSISTANT, text), finish_reason),), **meta)

    @classmethod
    def concat(cls, chunks: Iterable[CompletionResult]) -> CompletionResult:
        """Join streamed chunks into one result."""
        parts: list[str] = []
        finish_reason = None
        usage = None
        last: CompletionResult | None = None
        for chunk in chunks:
            last = chunk
            parts.append(chunk.text)
            finish_reason = chunk.finish_reason or finish_reason
            if chunk.usage is not None:
                usage = chunk.usage + usage
        base = cls.chunk("".join(parts), finish_reason)
        if last is None:
            return base
        return replace(base, usage=usage, model=last.model, id=last.id)
