"""Augmentors merge tagged fragments back into the prompt."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ..prompt import PromptTemplate
from .fragments import Augmentation, AugmentTarget, ContentType, Fragment, PromptContext, tag_key

DEFAULT_SYSTEM_TEMPLATE = """Use the conversation history from the HISTORY section to provide accurate answers.

HISTORY:
{history}"""

DEFAULT_QUESTION_TEMPLATE = """Context information is below.
---------------------
{context}
---------------------
Given the context and provided history information and not prior knowledge,
reply to the user comment. If the answer is not in the context, inform
the user that you can't answer the question."""


def format_fragment(fragment: Fragment) -> str:
    role = fragment.metadata.get("role")
    if role:
        return f"{role}: {fragment.text}"
    return fragment.text


class Augmentor(ABC):
    """Adds one block, built from its own tags, to the prompt."""

    def __init__(self, tags: Iterable[str | ContentType]) -> None:
        self.tags: tuple[str, ...] = tuple(sorted({tag_key(t) for t in tags}))
        if not self.tags:
            raise ValueError("Augmentor needs at least one tag")

    @property
    def key(self) -> str:
        """Identity of the block this augmentor owns."""
        return f"{type(self).__name__}:{','.join(self.tags)}"

    @abstractmethod
    def augment(self, ctx: PromptContext) -> PromptContext: ...


class SystemPromptChatMemoryAugmentor(Augmentor):
    """Fills a placeholder in a system-prompt template with fragment texts.

    The rendered template is added to the first system message, creating
    one when the prompt has none. With no fragments the placeholder becomes
    an empty string.
    """

    def __init__(
        self,
        template: str = DEFAULT_SYSTEM_TEMPLATE,
        tags: Iterable[str | ContentType] = (ContentType.SHORT_TERM_MEMORY,),
        placeholder: str = "history",
    ) -> None:
        super().__init__(tags)
        self.template = PromptTemplate(template)
        self.placeholder = placeholder
        # fail fast rather than on the first request
        self.template.render(**{placeholder: ""})

    def augment(self, ctx: PromptContext) -> PromptContext:
        history = "\n".join(format_fragment(f) for f in ctx.get_contents(*self.tags))
        text = self.template.render(**{self.placeholder: history})
        return ctx.with_augmentation(Augmentation(self.key, AugmentTarget.SYSTEM, text))


class QuestionContextAugmentor(Augmentor):
    """Appends a delimited context block after the user's question."""

    def __init__(
        self,
        tags: Iterable[str | ContentType] = (ContentType.EXTERNAL_KNOWLEDGE,),
        template: str = DEFAULT_QUESTION_TEMPLATE,
        placeholder: str = "context",
    ) -> None:
        super().__init__(tags)
        self.template = PromptTemplate(template)
        self.placeholder = placeholder
        self.template.render(**{placeholder: ""})

    def augment(self, ctx: PromptContext) -> PromptContext:
        fragments = ctx.get_contents(*self.tags)
        if not fragments:
            return ctx
        context = "\n".join(f.text for f in fragments)
        text = self.template.render(**{self.placeholder: context})
        return ctx.with_augmentation(Augmentation(self.key, AugmentTarget.QUESTION, text))
