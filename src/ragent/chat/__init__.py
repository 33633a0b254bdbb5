"""Chat completion client and results."""

from .client import DEFAULT_MODEL, ChatClient, InvocationState
from .result import CompletionResult, Generation, Usage

__all__ = [
    "DEFAULT_MODEL",
    "ChatClient",
    "CompletionResult",
    "Generation",
    "InvocationState",
    "Usage",
]
