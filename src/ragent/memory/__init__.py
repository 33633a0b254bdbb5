"""Memory stores, vector index, embeddings and token estimation."""

from .chat_memory import ChatMemory, InMemoryChatMemory
from .embedding import Embedder, HttpEmbedder
from .store import SQLiteChatMemory
from .tokens import TiktokenEstimator, TokenCountEstimator
from .vector import InMemoryVectorStore, ScoredRecord, VectorRecord, VectorStore

__all__ = [
    "ChatMemory",
    "Embedder",
    "HttpEmbedder",
    "InMemoryChatMemory",
    "InMemoryVectorStore",
    "SQLiteChatMemory",
    "ScoredRecord",
    "TiktokenEstimator",
    "TokenCountEstimator",
    "VectorRecord",
    "VectorStore",
]
