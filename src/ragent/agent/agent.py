"""Chat agent: retrieval-augmented prompt assembly around a ChatClient."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass

from ..chat import ChatClient, CompletionResult
from ..context import (
    Augmentor,
    ContentTransformer,
    PromptContext,
    Retriever,
    retrieve_all,
)
from ..conversation_logger import ConversationLogger, get_conversation_logger
from ..errors import ListenerError, RagentError
from ..prompt import Prompt
from .listeners import AgentListener

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Configuration for the chat agent.

    Attributes:
        tolerate_partial_retrieval: Continue with the fragments of the
            retrievers that succeeded when others fail. Off by default.
    """

    tolerate_partial_retrieval: bool = False


@dataclass(frozen=True)
class AgentResponse:
    """A completion paired with the context that produced it."""

    result: CompletionResult
    context: PromptContext

    @property
    def text(self) -> str:
        return self.result.text


class ChatAgent:
    """Answers requests with a prompt augmented from retrieved context.

    Listeners run as background tasks once a response exists; their
    failures are logged and never reach the caller. Before a new request
    starts retrieving, the agent waits for listeners still writing the
    previous exchange, so memory reads see earlier writes.
    """

    def __init__(
        self,
        client: ChatClient,
        retrievers: Sequence[Retriever] = (),
        transformers: Sequence[ContentTransformer] = (),
        augmentors: Sequence[Augmentor] = (),
        listeners: Sequence[AgentListener] = (),
        config: AgentConfig | None = None,
        conversation_logger: ConversationLogger | None = None,
    ) -> None:
        self.client = client
        self.retrievers = list(retrievers)
        self.transformers = list(transformers)
        self.augmentors = list(augmentors)
        self.listeners = list(listeners)
        self.config = config or AgentConfig()
        self.conv_logger = conversation_logger or get_conversation_logger()
        self._pending: set[asyncio.Task[None]] = set()

    @staticmethod
    def _as_context(request: PromptContext | Prompt | str) -> PromptContext:
        if isinstance(request, PromptContext):
            return request
        return PromptContext.of(request)

    async def prepare(self, request: PromptContext | Prompt | str) -> PromptContext:
        """Run retrieval, transformation and augmentation.

        Raises:
            RetrievalError: If a retriever fails and partial results are
                not tolerated.
        """
        await self.drain()
        ctx = self._as_context(request)
        conversation_id = ctx.conversation_id

        self.conv_logger.log_user_message(conversation_id, ctx.prompt.user_text)

        outcome = await retrieve_all(
            ctx,
            self.retrievers,
            tolerate_partial=self.config.tolerate_partial_retrieval,
        )
        ctx = outcome.context
        self.conv_logger.log_retrieval(
            conversation_id,
            ctx.counts(),
            failed=[f.retriever for f in outcome.failures],
        )

        for transformer in self.transformers:
            ctx = transformer.transform(ctx)
        for augmentor in self.augmentors:
            ctx = augmentor.augment(ctx)
        return ctx

    async def call(self, request: PromptContext | Prompt | str) -> AgentResponse:
        """Answer a request with a single blocking completion."""
        ctx = self._as_context(request)
        try:
            ctx = await self.prepare(ctx)
            result = await self.client.call(
                ctx.augmented_prompt(), conversation_id=ctx.conversation_id
            )
        except RagentError as e:
            self._log_failure(ctx.conversation_id, e)
            raise
        response = AgentResponse(result, ctx)
        self._finish(response)
        return response

    async def stream(self, request: PromptContext | Prompt | str) -> AsyncIterator[CompletionResult]:
        """Answer a request incrementally.

        Listeners are notified only when the stream is consumed to the end;
        closing the iterator early cancels the completion.
        """
        ctx = self._as_context(request)
        chunks: list[CompletionResult] = []
        try:
            ctx = await self.prepare(ctx)
            async with aclosing(
                self.client.stream(ctx.augmented_prompt(), conversation_id=ctx.conversation_id)
            ) as stream:
                async for chunk in stream:
                    chunks.append(chunk)
                    yield chunk
        except RagentError as e:
            self._log_failure(ctx.conversation_id, e)
            raise
        self._finish(AgentResponse(CompletionResult.concat(chunks), ctx))

    def _log_failure(self, conversation_id: str, error: RagentError) -> None:
        self.conv_logger.log_error(conversation_id, str(error), type(error).__name__)

    def _finish(self, response: AgentResponse) -> None:
        conversation_id = response.context.conversation_id
        self.conv_logger.log_assistant_message(conversation_id, response.text)
        self.conv_logger.log_agent_stop(conversation_id, response.result.finish_reason)
        for listener in self.listeners:
            task = asyncio.create_task(self._run_listener(listener, response))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_listener(self, listener: AgentListener, response: AgentResponse) -> None:
        try:
            await listener.on_response(response)
        except Exception as e:
            error = ListenerError(listener.name, e)
            logger.error("%s", error, exc_info=e)
            self.conv_logger.log_listener_error(
                response.context.conversation_id, listener.name, str(e)
            )

    async def drain(self) -> None:
        """Wait for listener tasks still in flight."""
        if self._pending:
            await asyncio.gather(*list(self._pending))
