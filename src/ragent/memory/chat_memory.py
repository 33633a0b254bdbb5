"""Short-term conversational memory."""

from collections import defaultdict
from typing import Protocol, runtime_checkable

from ..prompt import Message


@runtime_checkable
class ChatMemory(Protocol):
    """Stores the raw turns of each conversation."""

    def add(self, conversation_id: str, messages: list[Message]) -> None: ...

    def get(self, conversation_id: str, last_n: int) -> list[Message]: ...

    def clear(self, conversation_id: str) -> None: ...


class InMemoryChatMemory:
    """ChatMemory kept in a dict; lost when the process exits."""

    def __init__(self) -> None:
        self._conversations: dict[str, list[Message]] = defaultdict(list)

    def add(self, conversation_id: str, messages: list[Message]) -> None:
        self._conversations[conversation_id].extend(messages)

    def get(self, conversation_id: str, last_n: int) -> list[Message]:
        """Return up to ``last_n`` most recent messages, oldest first."""
        if last_n <= 0:
            return []
        return list(self._conversations.get(conversation_id, [])[-last_n:])

    def clear(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)
