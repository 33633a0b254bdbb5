"""Listeners persist each exchange after the response is produced."""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..context import ContentType
from ..memory import ChatMemory, Embedder, VectorRecord, VectorStore
from ..prompt import Message, Role

if TYPE_CHECKING:
    from .agent import AgentResponse


def exchange(response: AgentResponse) -> list[Message]:
    """The user's original question and the assistant's answer."""
    messages = []
    question = response.context.prompt.last_user_message
    if question is not None:
        messages.append(Message(Role.USER, question.content))
    messages.append(Message(Role.ASSISTANT, response.text))
    return messages


class AgentListener(ABC):
    """Side-effect hook run after each completion."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def on_response(self, response: AgentResponse) -> None: ...


class ChatMemoryAgentListener(AgentListener):
    """Appends the exchange to short-term chat memory."""

    def __init__(self, memory: ChatMemory) -> None:
        self.memory = memory

    async def on_response(self, response: AgentResponse) -> None:
        self.memory.add(response.context.conversation_id, exchange(response))


class VectorStoreChatMemoryAgentListener(AgentListener):
    """Embeds the exchange and stores it as long-term memory."""

    def __init__(self, store: VectorStore, embedder: Embedder) -> None:
        self.store = store
        self.embedder = embedder

    async def on_response(self, response: AgentResponse) -> None:
        messages = [m for m in exchange(response) if m.content]
        if not messages:
            return
        embeddings = await self.embedder.embed_many([m.content for m in messages])
        created_at = datetime.now(timezone.utc).isoformat()
        conversation_id = response.context.conversation_id
        records = [
            VectorRecord(
                id=f"{conversation_id}-{uuid.uuid4().hex}",
                text=m.content,
                embedding=embedding,
                metadata={
                    "content_type": ContentType.LONG_TERM_MEMORY.value,
                    "conversation_id": conversation_id,
                    "role": m.role.value,
                    "created_at": created_at,
                    "seq": seq,
                },
            )
            for seq, (m, embedding) in enumerate(zip(messages, embeddings))
        ]
        await self.store.upsert(records)
