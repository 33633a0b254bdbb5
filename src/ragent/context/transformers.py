"""Post-retrieval shaping of fragments."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from typing import Any

from ..memory import TokenCountEstimator
from .fragments import ContentType, Fragment, PromptContext, tag_key


class ContentTransformer(ABC):
    """Rewrites the fragments of a PromptContext."""

    @abstractmethod
    def transform(self, ctx: PromptContext) -> PromptContext: ...


class LastMaxTokenSizeContentTransformer(ContentTransformer):
    """Keeps the most recent fragments that fit a token budget.

    For every configured tag the fragments are walked from newest to oldest,
    accumulating token counts from ``estimator``; the walk stops at the first
    fragment that would overflow ``max_tokens``. What remains is always a
    suffix of the tag's order. Tags not listed pass through unchanged.

    Args:
        estimator: Token counter; the only source of counts.
        max_tokens: Budget per tag.
        tags: Tags the budget applies to.
        sort_key: Optional key ordering fragments oldest/least relevant
            first before truncation. Defaults to retrieval order.
    """

    def __init__(
        self,
        estimator: TokenCountEstimator,
        max_tokens: int,
        tags: Iterable[str | ContentType],
        sort_key: Callable[[Fragment], Any] | None = None,
    ) -> None:
        if max_tokens < 0:
            raise ValueError("max_tokens must be >= 0")
        self.estimator = estimator
        self.max_tokens = max_tokens
        self.tags = frozenset(tag_key(t) for t in tags)
        self.sort_key = sort_key

    def truncate(self, fragments: list[Fragment]) -> list[Fragment]:
        if self.sort_key is not None:
            fragments = sorted(fragments, key=self.sort_key)

        kept: list[Fragment] = []
        total = 0
        for fragment in reversed(fragments):
            tokens = self.estimator.estimate(fragment.text)
            if total + tokens > self.max_tokens:
                break
            total += tokens
            kept.append(fragment.annotate("token_count", tokens))
        kept.reverse()
        return kept

    def transform(self, ctx: PromptContext) -> PromptContext:
        for tag in sorted(self.tags):
            if tag in ctx.contents:
                ctx = ctx.replace_contents(tag, self.truncate(list(ctx.contents[tag])))
        return ctx
