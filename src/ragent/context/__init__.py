"""Retrieval-augmented prompt context: fragments, retrievers, transformers, augmentors."""

from .augmentors import (
    Augmentor,
    QuestionContextAugmentor,
    SystemPromptChatMemoryAugmentor,
)
from .fragments import Augmentation, AugmentTarget, ContentType, Fragment, PromptContext
from .retrievers import (
    ChatMemoryRetriever,
    RetrievalOutcome,
    Retriever,
    SearchRequest,
    VectorStoreChatMemoryRetriever,
    VectorStoreRetriever,
    retrieve_all,
)
from .transformers import ContentTransformer, LastMaxTokenSizeContentTransformer

__all__ = [
    "AugmentTarget",
    "Augmentation",
    "Augmentor",
    "ChatMemoryRetriever",
    "ContentTransformer",
    "ContentType",
    "Fragment",
    "LastMaxTokenSizeContentTransformer",
    "PromptContext",
    "QuestionContextAugmentor",
    "RetrievalOutcome",
    "Retriever",
    "SearchRequest",
    "SystemPromptChatMemoryAugmentor",
    "VectorStoreChatMemoryRetriever",
    "VectorStoreRetriever",
    "retrieve_all",
]
