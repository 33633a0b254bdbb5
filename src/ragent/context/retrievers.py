"""Retrievers pull supplementary fragments into a PromptContext."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ..errors import RetrievalError
from ..memory import ChatMemory, Embedder, VectorStore
from .fragments import ContentType, Fragment, PromptContext, tag_key

logger = logging.getLogger(__name__)


class Retriever(ABC):
    """Produces fragments for a single content-type tag."""

    content_type: str = ContentType.EXTERNAL_KNOWLEDGE.value

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def retrieve(self, ctx: PromptContext) -> list[Fragment]:
        """Return fragments for the context, in oldest-to-newest order.

        Raises:
            RetrievalError: If the backing store cannot be queried.
        """
        ...


@dataclass(frozen=True)
class SearchRequest:
    """Similarity search parameters.

    Attributes:
        top_k: Number of nearest neighbours to return.
        similarity_threshold: Hits scoring below this are dropped.
        where: Metadata equality filter. None means "records tagged
            external_knowledge".
    """

    top_k: int = 4
    similarity_threshold: float = 0.0
    where: dict[str, Any] | None = None


class VectorStoreRetriever(Retriever):
    """Similarity search over the knowledge documents in a vector store."""

    def __init__(
        self,
        store: VectorStore,
        embedder: Embedder,
        request: SearchRequest | None = None,
        content_type: str | ContentType = ContentType.EXTERNAL_KNOWLEDGE,
    ) -> None:
        self.store = store
        self.embedder = embedder
        self.request = request or SearchRequest()
        self.content_type = tag_key(content_type)

    async def retrieve(self, ctx: PromptContext) -> list[Fragment]:
        query = ctx.prompt.user_text
        if not query:
            return []
        where = self.request.where
        if where is None:
            where = {"content_type": self.content_type}
        try:
            embedding = await self.embedder.embed(query)
            hits = await self.store.query(embedding, self.request.top_k, where=where)
        except Exception as e:
            raise RetrievalError(self.name, e) from e

        fragments = []
        for hit in hits:
            if hit.score < self.request.similarity_threshold:
                continue
            metadata = {**hit.record.metadata, "score": hit.score}
            fragments.append(Fragment(hit.record.text, metadata, id=hit.record.id))
        # least similar first, so the most relevant survive truncation
        fragments.reverse()
        return fragments


class ChatMemoryRetriever(Retriever):
    """Most recent raw turns of the conversation."""

    content_type = ContentType.SHORT_TERM_MEMORY.value

    def __init__(self, memory: ChatMemory, last_n: int = 10) -> None:
        self.memory = memory
        self.last_n = last_n

    async def retrieve(self, ctx: PromptContext) -> list[Fragment]:
        try:
            messages = self.memory.get(ctx.conversation_id, self.last_n)
        except Exception as e:
            raise RetrievalError(self.name, e) from e
        return [
            Fragment(m.content, {"role": m.role.value, "conversation_id": ctx.conversation_id})
            for m in messages
        ]


class VectorStoreChatMemoryRetriever(Retriever):
    """Similarity search over past exchanges persisted as long-term memory."""

    content_type = ContentType.LONG_TERM_MEMORY.value

    def __init__(self, store: VectorStore, embedder: Embedder, top_k: int = 10) -> None:
        self.store = store
        self.embedder = embedder
        self.top_k = top_k

    async def retrieve(self, ctx: PromptContext) -> list[Fragment]:
        query = ctx.prompt.user_text
        if not query:
            return []
        where = {"content_type": self.content_type, "conversation_id": ctx.conversation_id}
        try:
            embedding = await self.embedder.embed(query)
            hits = await self.store.query(embedding, self.top_k, where=where)
        except Exception as e:
            raise RetrievalError(self.name, e) from e

        fragments = [
            Fragment(hit.record.text, {**hit.record.metadata, "score": hit.score}, id=hit.record.id)
            for hit in hits
        ]
        fragments.sort(key=lambda f: (f.metadata.get("created_at", ""), f.metadata.get("seq", 0)))
        return fragments


@dataclass
class RetrievalOutcome:
    """Merged context plus the failures that were tolerated."""

    context: PromptContext
    failures: list[RetrievalError] = field(default_factory=list)


async def retrieve_all(
    ctx: PromptContext,
    retrievers: Sequence[Retriever],
    tolerate_partial: bool = False,
) -> RetrievalOutcome:
    """Run retrievers concurrently and merge their fragments by tag.

    All retrievers complete before this returns. Fragments are appended per
    tag in retriever order.

    Raises:
        RetrievalError: On the first failure, unless ``tolerate_partial``.
    """
    results = await asyncio.gather(
        *(r.retrieve(ctx) for r in retrievers), return_exceptions=True
    )

    failures: list[RetrievalError] = []
    for retriever, result in zip(retrievers, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            error = result if isinstance(result, RetrievalError) else RetrievalError(retriever.name, result)
            if not tolerate_partial:
                if error is result:
                    raise error
                raise error from result
            logger.warning("Tolerating retrieval failure: %s", error)
            failures.append(error)
            continue

        for fragment in result:
            fragment.annotate("content_type", retriever.content_type)
            fragment.metadata.setdefault("retriever", retriever.name)
        ctx = ctx.add_contents(retriever.content_type, result)

    return RetrievalOutcome(ctx, failures)
