"""Prompt templates with ``{name}`` placeholders.

Only identifier-shaped placeholders are substituted, so JSON snippets and
schemas embedded in a template are left untouched. ``{{`` and ``}}`` render
as literal braces.

Templates can also be loaded from resource files carrying YAML front
matter, parsed with python-frontmatter::

    ---
    role: system
    variables:
      voice: pirate
    ---
    You are {name}, and you answer in the style of a {voice}.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import frontmatter

from ..errors import TemplateError, UnusedVariableError
from .messages import ChatOptions, Message, Prompt, Role, system_message, user_message

if TYPE_CHECKING:
    from ..tools import Tool

_PLACEHOLDER = re.compile(r"\{\{|\}\}|\{([A-Za-z_][A-Za-z0-9_]*)\}")


def find_placeholders(template: str) -> set[str]:
    """Return the set of placeholder names referenced by a template."""
    return {m.group(1) for m in _PLACEHOLDER.finditer(template) if m.group(1)}


class PromptTemplate:
    """A text template bound to a set of variables.

    Args:
        template: Template text with ``{name}`` placeholders.
        variables: Values bound at construction time.
        strict: When True, supplying a variable the template never
            references raises UnusedVariableError. Unbound placeholders
            always raise TemplateError.
    """

    role: Role = Role.USER

    def __init__(
        self,
        template: str,
        variables: dict[str, Any] | None = None,
        strict: bool = True,
    ) -> None:
        self.template = template
        self.variables: dict[str, Any] = dict(variables or {})
        self.strict = strict

    @property
    def placeholders(self) -> set[str]:
        return find_placeholders(self.template)

    def render(self, **extra: Any) -> str:
        """Fill the template.

        Raises:
            TemplateError: If a referenced placeholder has no value.
            UnusedVariableError: If strict and a supplied value is unused.
        """
        values = {**self.variables, **extra}
        referenced = self.placeholders

        missing = referenced - values.keys()
        if missing:
            raise TemplateError(
                f"Unbound template variables: {', '.join(sorted(missing))}",
                self.template,
                missing,
            )

        unused = values.keys() - referenced
        if unused and self.strict:
            raise UnusedVariableError(
                f"Template variables never referenced: {', '.join(sorted(unused))}",
                self.template,
                unused,
            )

        def substitute(match: re.Match[str]) -> str:
            token = match.group(0)
            if token == "{{":
                return "{"
            if token == "}}":
                return "}"
            return str(values[match.group(1)])

        return _PLACEHOLDER.sub(substitute, self.template)

    def create_message(self, role: Role | None = None, **extra: Any) -> Message:
        return Message(role or self.role, self.render(**extra))

    def create_prompt(self, options: ChatOptions | None = None, **extra: Any) -> Prompt:
        return Prompt((self.create_message(**extra),), options)


class SystemPromptTemplate(PromptTemplate):
    """Template whose messages carry the system role."""

    role = Role.SYSTEM


def load_template(path: Path | str, strict: bool = True) -> PromptTemplate:
    """Load a template resource file, honouring optional front matter.

    Supported front matter keys: ``role`` (system/user/assistant) and
    ``variables`` (default values).
    """
    path = Path(path)
    try:
        post = frontmatter.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise TemplateError(f"Cannot read template {path}: {e}", "") from e

    variables = post.metadata.get("variables") or {}
    if not isinstance(variables, dict):
        raise TemplateError(f"'variables' in {path} must be a mapping", post.content)

    role_name = str(post.metadata.get("role", "user")).lower()
    try:
        role = Role(role_name)
    except ValueError as e:
        raise TemplateError(f"Unknown role '{role_name}' in {path}", post.content) from e

    cls = SystemPromptTemplate if role == Role.SYSTEM else PromptTemplate
    template = cls(post.content, variables, strict=strict)
    template.role = role
    return template


def build_prompt(
    user_text: str,
    format_instructions: str | None = None,
    functions: list[Tool] | None = None,
    system: str | None = None,
    options: ChatOptions | None = None,
) -> Prompt:
    """Assemble a prompt from raw user text.

    Args:
        user_text: The question or instruction from the user.
        format_instructions: Output format directive, usually the ``format``
            of an output converter; appended to the user message.
        functions: Callable tools the model may invoke while answering.
        system: Optional system message text.
        options: Base request options; declared functions are added to them.

    Returns:
        A new Prompt.
    """
    text = user_text
    if format_instructions:
        text = f"{user_text.rstrip()}\n{format_instructions}"

    messages: list[Message] = []
    if system:
        messages.append(system_message(system))
    messages.append(user_message(text))

    if functions:
        options = (options or ChatOptions()).merge(ChatOptions(functions=tuple(functions)))

    return Prompt(tuple(messages), options)
