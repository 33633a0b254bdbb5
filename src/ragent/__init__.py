"""Retrieval-augmented chat agent toolkit."""

from .agent import AgentConfig, AgentResponse, ChatAgent
from .chat import ChatClient, CompletionResult
from .context import ContentType, Fragment, PromptContext
from .converters import ListOutputConverter, MapOutputConverter, SchemaOutputConverter
from .errors import (
    FormatMismatchError,
    FunctionLoopExceeded,
    ListenerError,
    RagentError,
    RetrievalError,
    TemplateError,
    UnknownFunctionError,
    UnusedVariableError,
)
from .prompt import ChatOptions, Media, Message, Prompt, PromptTemplate, Role

__all__ = [
    "AgentConfig",
    "AgentResponse",
    "ChatAgent",
    "ChatClient",
    "ChatOptions",
    "CompletionResult",
    "ContentType",
    "FormatMismatchError",
    "Fragment",
    "FunctionLoopExceeded",
    "ListOutputConverter",
    "ListenerError",
    "MapOutputConverter",
    "Media",
    "Message",
    "Prompt",
    "PromptContext",
    "PromptTemplate",
    "RagentError",
    "RetrievalError",
    "Role",
    "SchemaOutputConverter",
    "TemplateError",
    "UnknownFunctionError",
    "UnusedVariableError",
]
