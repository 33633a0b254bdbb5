"""Chat agent and its listeners."""

from .agent import AgentConfig, AgentResponse, ChatAgent
from .listeners import (
    AgentListener,
    ChatMemoryAgentListener,
    VectorStoreChatMemoryAgentListener,
)

__all__ = [
    "AgentConfig",
    "AgentListener",
    "AgentResponse",
    "ChatAgent",
    "ChatMemoryAgentListener",
    "VectorStoreChatMemoryAgentListener",
]
