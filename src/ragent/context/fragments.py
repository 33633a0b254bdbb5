"""Retrieved content fragments and the request-scoped PromptContext."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from ..prompt import Message, Prompt, Role, system_message


class ContentType(str, Enum):
    """Built-in content-type tags. Any string is accepted as a tag."""

    SHORT_TERM_MEMORY = "short_term_memory"
    LONG_TERM_MEMORY = "long_term_memory"
    EXTERNAL_KNOWLEDGE = "external_knowledge"


def tag_key(tag: str | ContentType) -> str:
    return tag.value if isinstance(tag, ContentType) else str(tag)


@dataclass(frozen=True)
class Fragment:
    """A unit of retrieved text with free-form metadata.

    The text never changes after creation. Metadata may be annotated in
    place (for example with provenance or token counts).
    """

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def annotate(self, key: str, value: Any) -> Fragment:
        self.metadata[key] = value
        return self


class AugmentTarget(Enum):
    """Message an augmentation lands in."""

    SYSTEM = "system"
    QUESTION = "question"


@dataclass(frozen=True)
class Augmentation:
    """A rendered block contributed by one augmentor."""

    key: str
    target: AugmentTarget
    text: str


@dataclass(frozen=True)
class PromptContext:
    """A prompt plus retrieved fragments grouped by content-type tag.

    ``prompt`` is the prompt as the caller built it. Augmentors record
    blocks in ``augmentations`` keyed by augmentor; :meth:`augmented_prompt`
    composes them in key order, so augmentors over disjoint tags commute.
    """

    prompt: Prompt
    contents: dict[str, tuple[Fragment, ...]] = field(default_factory=dict)
    augmentations: tuple[Augmentation, ...] = ()
    conversation_id: str = "default"

    @classmethod
    def of(cls, prompt: Prompt | str, conversation_id: str = "default") -> PromptContext:
        if isinstance(prompt, str):
            prompt = Prompt.of(prompt)
        return cls(prompt=prompt, conversation_id=conversation_id)

    def get_contents(self, *tags: str | ContentType) -> list[Fragment]:
        """Fragments for the given tags, in tag order then retrieval order."""
        fragments: list[Fragment] = []
        for tag in tags:
            fragments.extend(self.contents.get(tag_key(tag), ()))
        return fragments

    def add_contents(self, tag: str | ContentType, fragments: Iterable[Fragment]) -> PromptContext:
        """Append fragments under a tag. Existing fragments are kept."""
        key = tag_key(tag)
        contents = dict(self.contents)
        contents[key] = contents.get(key, ()) + tuple(fragments)
        return replace(self, contents=contents)

    def replace_contents(self, tag: str | ContentType, fragments: Iterable[Fragment]) -> PromptContext:
        key = tag_key(tag)
        contents = dict(self.contents)
        contents[key] = tuple(fragments)
        return replace(self, contents=contents)

    def with_augmentation(self, augmentation: Augmentation) -> PromptContext:
        """Record an augmentation, replacing any earlier one with the same key."""
        kept = tuple(a for a in self.augmentations if a.key != augmentation.key)
        ordered = sorted(kept + (augmentation,), key=lambda a: (a.target.value, a.key))
        return replace(self, augmentations=tuple(ordered))

    def counts(self) -> dict[str, int]:
        return {tag: len(fragments) for tag, fragments in self.contents.items()}

    def augmented_prompt(self) -> Prompt:
        """Build the prompt with every recorded augmentation applied."""
        system_blocks = [a.text for a in self.augmentations if a.target is AugmentTarget.SYSTEM]
        question_blocks = [a.text for a in self.augmentations if a.target is AugmentTarget.QUESTION]
        prompt = self.prompt

        if system_blocks:
            block = "\n\n".join(system_blocks)
            current = prompt.system_message
            if current is None:
                prompt = prompt.with_messages((system_message(block),) + prompt.messages)
            else:
                text = f"{current.content}\n\n{block}" if current.content else block
                prompt = prompt.replace_message(current, replace(current, content=text))

        if question_blocks:
            question = prompt.last_user_message
            block = "\n\n".join(question_blocks)
            if question is None:
                prompt = prompt.append(Message(Role.USER, block))
            else:
                text = f"{question.content}\n\n{block}"
                prompt = prompt.replace_message(question, replace(question, content=text))

        return prompt
