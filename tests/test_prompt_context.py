"""Tests for fragments, PromptContext and augmentors."""

import pytest

from ragent.context import (
    ContentType,
    Fragment,
    PromptContext,
    QuestionContextAugmentor,
    SystemPromptChatMemoryAugmentor,
)
from ragent.errors import TemplateError
from ragent.prompt import Prompt, Role, system_message, user_message


def context_with_memory_and_knowledge() -> PromptContext:
    ctx = PromptContext.of("What is my name?", conversation_id="c1")
    ctx = ctx.add_contents(
        ContentType.SHORT_TERM_MEMORY,
        [Fragment("My name is Bob", {"role": "user"}), Fragment("Hi Bob", {"role": "assistant"})],
    )
    return ctx.add_contents(ContentType.EXTERNAL_KNOWLEDGE, [Fragment("Bikes have two wheels.")])


class TestPromptContext:
    """Tests for the request-scoped context."""

    def test_of_text(self):
        ctx = PromptContext.of("Hi")
        assert ctx.prompt.user_text == "Hi"
        assert ctx.contents == {}
        assert ctx.conversation_id == "default"

    def test_add_contents_appends(self):
        ctx = PromptContext.of("Hi")
        ctx = ctx.add_contents("custom", [Fragment("a")])
        ctx = ctx.add_contents("custom", [Fragment("b")])
        assert [f.text for f in ctx.get_contents("custom")] == ["a", "b"]

    def test_add_contents_does_not_mutate(self):
        ctx = PromptContext.of("Hi")
        ctx.add_contents("custom", [Fragment("a")])
        assert ctx.get_contents("custom") == []

    def test_get_contents_in_tag_order(self):
        ctx = context_with_memory_and_knowledge()
        texts = [f.text for f in ctx.get_contents(ContentType.EXTERNAL_KNOWLEDGE, ContentType.SHORT_TERM_MEMORY)]
        assert texts == ["Bikes have two wheels.", "My name is Bob", "Hi Bob"]

    def test_counts(self):
        assert context_with_memory_and_knowledge().counts() == {
            "short_term_memory": 2,
            "external_knowledge": 1,
        }

    def test_unaugmented_prompt_is_unchanged(self):
        ctx = context_with_memory_and_knowledge()
        assert ctx.augmented_prompt() == ctx.prompt

    def test_fragment_annotate(self):
        fragment = Fragment("text")
        assert fragment.annotate("token_count", 1) is fragment
        assert fragment.metadata == {"token_count": 1}


class TestSystemPromptChatMemoryAugmentor:
    """Tests for history injected into the system message."""

    def test_creates_system_message(self):
        ctx = SystemPromptChatMemoryAugmentor().augment(context_with_memory_and_knowledge())
        prompt = ctx.augmented_prompt()
        assert prompt.messages[0].role == Role.SYSTEM
        assert "HISTORY:\nuser: My name is Bob\nassistant: Hi Bob" in prompt.messages[0].content
        assert prompt.user_text == "What is my name?"

    def test_extends_existing_system_message(self):
        ctx = PromptContext.of(Prompt.of([system_message("You are helpful."), user_message("Hi")]))
        ctx = ctx.add_contents(ContentType.SHORT_TERM_MEMORY, [Fragment("earlier")])
        prompt = SystemPromptChatMemoryAugmentor().augment(ctx).augmented_prompt()
        system_messages = [m for m in prompt.messages if m.role == Role.SYSTEM]
        assert len(system_messages) == 1
        assert system_messages[0].content.startswith("You are helpful.\n\n")
        assert system_messages[0].content.endswith("earlier")

    def test_empty_history_substitutes_empty_string(self):
        prompt = SystemPromptChatMemoryAugmentor().augment(PromptContext.of("Hi")).augmented_prompt()
        assert prompt.system_message.content.endswith("HISTORY:\n")

    def test_template_without_placeholder_rejected(self):
        with pytest.raises(TemplateError):
            SystemPromptChatMemoryAugmentor("No placeholder here")

    def test_reapplying_replaces_block(self):
        augmentor = SystemPromptChatMemoryAugmentor()
        ctx = augmentor.augment(augmentor.augment(context_with_memory_and_knowledge()))
        assert len(ctx.augmentations) == 1


class TestQuestionContextAugmentor:
    """Tests for knowledge appended to the question."""

    def test_appends_context_block(self):
        ctx = QuestionContextAugmentor().augment(context_with_memory_and_knowledge())
        question = ctx.augmented_prompt().last_user_message.content
        assert question.startswith("What is my name?\n\nContext information is below.")
        assert "Bikes have two wheels." in question

    def test_no_fragments_leaves_prompt_unchanged(self):
        ctx = PromptContext.of("Hi")
        augmented = QuestionContextAugmentor().augment(ctx)
        assert augmented.augmented_prompt() == ctx.prompt

    def test_requires_a_tag(self):
        with pytest.raises(ValueError):
            QuestionContextAugmentor(tags=[])


class TestAugmentorsCommute:
    """Augmentors over disjoint tags produce the same prompt in any order."""

    def test_order_independent(self):
        ctx = context_with_memory_and_knowledge()
        long_term = SystemPromptChatMemoryAugmentor(
            "LONG TERM HISTORY:\n{history}", [ContentType.LONG_TERM_MEMORY]
        )
        augmentors = [SystemPromptChatMemoryAugmentor(), QuestionContextAugmentor(), long_term]

        forward = ctx
        for augmentor in augmentors:
            forward = augmentor.augment(forward)
        backward = ctx
        for augmentor in reversed(augmentors):
            backward = augmentor.augment(backward)

        assert forward.augmented_prompt() == backward.augmented_prompt()

    def test_keys_differ_by_tags(self):
        a = SystemPromptChatMemoryAugmentor(tags=[ContentType.SHORT_TERM_MEMORY])
        b = SystemPromptChatMemoryAugmentor(tags=[ContentType.LONG_TERM_MEMORY])
        assert a.key != b.key
