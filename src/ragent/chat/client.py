"""Completion invoker backed by the Groq chat-completions API."""

from __future__ import annotations

import json
import logging
import os
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from groq import AsyncGroq

from ..conversation_logger import ConversationLogger
from ..errors import FunctionLoopExceeded
from ..prompt import ChatOptions, Message, Prompt, Role, ToolCall
from ..tools import ToolRegistry
from .result import CompletionResult, Usage

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama-3.1-70b-versatile"
DEFAULT_MAX_FUNCTION_ROUNDS = 10


class InvocationState(Enum):
    """States of the function-calling loop."""

    AWAITING_MODEL = "awaiting_model"
    EXECUTING_FUNCTION = "executing_function"
    DONE = "done"
    LOOP_EXCEEDED = "loop_exceeded"


@dataclass
class _ToolCallBuffer:
    """Accumulates tool-call fragments delivered across stream chunks."""

    calls: dict[int, dict[str, str]] = field(default_factory=dict)

    def add(self, deltas: Any) -> None:
        for position, delta in enumerate(deltas):
            index = getattr(delta, "index", None)
            if index is None:
                index = position
            call = self.calls.setdefault(index, {"id": "", "name": "", "arguments": ""})
            if getattr(delta, "id", None):
                call["id"] = delta.id
            function = getattr(delta, "function", None)
            if function is not None:
                if getattr(function, "name", None):
                    call["name"] += function.name
                if getattr(function, "arguments", None):
                    call["arguments"] += function.arguments

    def tool_calls(self) -> tuple[ToolCall, ...]:
        return tuple(
            ToolCall(id=c["id"] or f"call_{i}", name=c["name"], arguments=c["arguments"] or "{}")
            for i, c in sorted(self.calls.items())
        )


def _chunk_usage(chunk: Any) -> Usage | None:
    """Usage reported on a stream chunk; Groq puts it under ``x_groq``."""
    usage = getattr(chunk, "usage", None)
    if usage is None:
        usage = getattr(getattr(chunk, "x_groq", None), "usage", None)
    return Usage.from_api(usage)


class ChatClient:
    """Sends prompts to the completion service.

    Supports a blocking mode (:meth:`call`) and an incremental mode
    (:meth:`stream`). When the prompt declares functions and the model asks
    for one, the client runs it, appends the result as a ``tool`` message and
    asks the model again, up to ``max_function_rounds`` times.
    """

    def __init__(
        self,
        groq_client: AsyncGroq | None = None,
        options: ChatOptions | None = None,
        registry: ToolRegistry | None = None,
        max_function_rounds: int = DEFAULT_MAX_FUNCTION_ROUNDS,
        conversation_logger: ConversationLogger | None = None,
    ) -> None:
        self.client = groq_client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.default_options = ChatOptions(model=DEFAULT_MODEL).merge(options)
        self.registry = registry or ToolRegistry()
        self.max_function_rounds = max_function_rounds
        self.conv_logger = conversation_logger

    @property
    def model(self) -> str:
        return self.default_options.model or DEFAULT_MODEL

    def _resolve(self, prompt: Prompt) -> tuple[ChatOptions, ToolRegistry]:
        """Merge request options over defaults and collect declared functions."""
        options = self.default_options.merge(prompt.options)
        functions = self.registry.scoped(options.function_names, options.functions)
        return options, functions

    def _request(
        self,
        messages: list[Message],
        options: ChatOptions,
        functions: ToolRegistry,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": options.model or DEFAULT_MODEL,
            "messages": [m.to_dict() for m in messages],
            **options.sampling_kwargs(),
        }
        if len(functions):
            kwargs["tools"] = functions.get_tools_schema()
            kwargs["tool_choice"] = "auto"
        return kwargs

    async def _execute_calls(
        self,
        tool_calls: tuple[ToolCall, ...],
        functions: ToolRegistry,
        conversation_id: str | None,
    ) -> list[Message]:
        """Run requested functions and build the tool response messages."""
        responses = []
        for call in tool_calls:
            try:
                args = json.loads(call.arguments) if call.arguments.strip() else {}
            except json.JSONDecodeError as e:
                args = None
                logger.warning("Discarding malformed arguments for %s: %s", call.name, e)

            if conversation_id and self.conv_logger:
                self.conv_logger.log_function_call(
                    conversation_id, call.name, args or {}, call_id=call.id
                )

            start_time = time.time()
            if not isinstance(args, dict):
                content = f"[{call.name}] Error: arguments must be a JSON object"
                success, output, error = False, "", "arguments must be a JSON object"
            else:
                result = await functions.dispatch(call.name, args)
                content = result.to_message_content(call.name)
                success, output, error = result.success, result.output, result.error
            duration_ms = (time.time() - start_time) * 1000

            if conversation_id and self.conv_logger:
                self.conv_logger.log_function_result(
                    conversation_id,
                    call.name,
                    success=success,
                    output=output,
                    error=error,
                    call_id=call.id,
                    duration_ms=duration_ms,
                )

            responses.append(
                Message(Role.TOOL, content, tool_call_id=call.id, name=call.name)
            )
        return responses

    def _log_request(
        self,
        conversation_id: str | None,
        kwargs: dict[str, Any],
        stream: bool,
    ) -> None:
        if conversation_id and self.conv_logger:
            self.conv_logger.log_llm_request(
                conversation_id,
                model=kwargs["model"],
                messages_count=len(kwargs["messages"]),
                has_functions="tools" in kwargs,
                stream=stream,
            )

    def _log_response(
        self,
        conversation_id: str | None,
        content: str,
        tool_calls: tuple[ToolCall, ...],
        finish_reason: str | None,
    ) -> None:
        if conversation_id and self.conv_logger:
            self.conv_logger.log_llm_response(
                conversation_id,
                has_content=bool(content),
                function_calls_count=len(tool_calls),
                finish_reason=finish_reason,
            )

    async def call(self, prompt: Prompt, conversation_id: str | None = None) -> CompletionResult:
        """Send the prompt and wait for the final completion.

        Raises:
            FunctionLoopExceeded: If the model still requests functions after
                ``max_function_rounds`` rounds.
            UnknownFunctionError: If the options enable an unregistered
                function name.
        """
        options, functions = self._resolve(prompt)
        messages = list(prompt.messages)
        usage = Usage()
        rounds = 0
        state = InvocationState.AWAITING_MODEL
        result: CompletionResult | None = None

        while True:
            if state is InvocationState.AWAITING_MODEL:
                kwargs = self._request(messages, options, functions)
                self._log_request(conversation_id, kwargs, stream=False)
                response = await self.client.chat.completions.create(**kwargs)
                result = CompletionResult.from_response(response)
                usage = usage + result.usage
                message = result.result.message
                self._log_response(
                    conversation_id, message.content, message.tool_calls, result.finish_reason
                )
                if message.tool_calls:
                    state = InvocationState.EXECUTING_FUNCTION
                else:
                    state = InvocationState.DONE

            elif state is InvocationState.EXECUTING_FUNCTION:
                assert result is not None
                if rounds >= self.max_function_rounds:
                    state = InvocationState.LOOP_EXCEEDED
                    continue
                rounds += 1
                message = result.result.message
                messages.append(message)
                messages.extend(
                    await self._execute_calls(message.tool_calls, functions, conversation_id)
                )
                state = InvocationState.AWAITING_MODEL

            elif state is InvocationState.DONE:
                assert result is not None
                return replace(result, usage=usage)

            else:
                assert result is not None
                raise FunctionLoopExceeded(
                    self.max_function_rounds,
                    [tc.name for tc in result.result.message.tool_calls],
                )

    async def stream(
        self, prompt: Prompt, conversation_id: str | None = None
    ) -> AsyncIterator[CompletionResult]:
        """Stream the completion as text chunks.

        The returned async iterator is lazy and finite. Closing it early
        (``aclose()`` or breaking out of ``async for``) stops production and
        closes the underlying HTTP stream. Function calls requested mid-stream
        are executed and the model is re-invoked, as in :meth:`call`.
        The final chunk has empty text and carries the stop reason and the
        token usage of every round.

        Raises:
            FunctionLoopExceeded: See :meth:`call`.
        """
        options, functions = self._resolve(prompt)
        messages = list(prompt.messages)
        rounds = 0
        state = InvocationState.AWAITING_MODEL
        pending: tuple[ToolCall, ...] = ()
        assistant_text = ""
        usage: Usage | None = None

        while state is not InvocationState.DONE:
            if state is InvocationState.AWAITING_MODEL:
                kwargs = self._request(messages, options, functions)
                self._log_request(conversation_id, kwargs, stream=True)
                response_stream = await self.client.chat.completions.create(**kwargs, stream=True)
                buffer = _ToolCallBuffer()
                parts: list[str] = []
                finish_reason = None
                model = response_id = None
                try:
                    async for chunk in response_stream:
                        model = getattr(chunk, "model", None) or model
                        response_id = getattr(chunk, "id", None) or response_id
                        chunk_usage = _chunk_usage(chunk)
                        if chunk_usage is not None:
                            usage = chunk_usage + usage
                        if not chunk.choices:
                            continue
                        choice = chunk.choices[0]
                        delta = choice.delta
                        finish_reason = choice.finish_reason or finish_reason
                        if getattr(delta, "tool_calls", None):
                            buffer.add(delta.tool_calls)
                        if delta.content:
                            parts.append(delta.content)
                            yield CompletionResult.chunk(delta.content, model=model, id=response_id)
                finally:
                    await response_stream.close()

                pending = buffer.tool_calls()
                assistant_text = "".join(parts)
                self._log_response(conversation_id, assistant_text, pending, finish_reason)
                if pending:
                    state = InvocationState.EXECUTING_FUNCTION
                else:
                    # metadata-only chunk: stop reason and usage summed over every round
                    yield CompletionResult.chunk(
                        "", finish_reason, usage=usage, model=model, id=response_id
                    )
                    state = InvocationState.DONE

            elif state is InvocationState.EXECUTING_FUNCTION:
                if rounds >= self.max_function_rounds:
                    state = InvocationState.LOOP_EXCEEDED
                    continue
                rounds += 1
                messages.append(Message(Role.ASSISTANT, assistant_text, tool_calls=pending))
                messages.extend(await self._execute_calls(pending, functions, conversation_id))
                state = InvocationState.AWAITING_MODEL

            else:
                raise FunctionLoopExceeded(self.max_function_rounds, [tc.name for tc in pending])
