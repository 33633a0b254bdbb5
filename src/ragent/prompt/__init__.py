"""Prompt model and templating."""

from .messages import (
    ChatOptions,
    Media,
    Message,
    Prompt,
    Role,
    ToolCall,
    assistant_message,
    system_message,
    user_message,
)
from .template import (
    PromptTemplate,
    SystemPromptTemplate,
    build_prompt,
    find_placeholders,
    load_template,
)

__all__ = [
    "ChatOptions",
    "Media",
    "Message",
    "Prompt",
    "PromptTemplate",
    "Role",
    "SystemPromptTemplate",
    "ToolCall",
    "assistant_message",
    "build_prompt",
    "find_placeholders",
    "load_template",
    "system_message",
    "user_message",
]
