"""Tests for token-budget truncation."""

import pytest

from fakes import WordCountEstimator
from ragent.context import ContentType, Fragment, LastMaxTokenSizeContentTransformer, PromptContext

SHORT = ContentType.SHORT_TERM_MEMORY


def fragments(*texts: str) -> list[Fragment]:
    return [Fragment(t) for t in texts]


class TestLastMaxTokenSizeContentTransformer:
    """Tests for LastMaxTokenSizeContentTransformer."""

    def test_keeps_newest_suffix_within_budget(self):
        transformer = LastMaxTokenSizeContentTransformer(WordCountEstimator(), 5, [SHORT])
        ctx = PromptContext.of("q").add_contents(SHORT, fragments("one two three", "four five", "six seven"))

        kept = transformer.transform(ctx).get_contents(SHORT)

        assert [f.text for f in kept] == ["four five", "six seven"]
        assert [f.metadata["token_count"] for f in kept] == [2, 2]

    def test_stops_at_first_overflow(self):
        transformer = LastMaxTokenSizeContentTransformer(WordCountEstimator(), 4, [SHORT])
        ctx = PromptContext.of("q").add_contents(SHORT, fragments("a", "b c d e f", "g"))

        kept = transformer.transform(ctx).get_contents(SHORT)

        # "a" would fit but is not contiguous with the kept suffix
        assert [f.text for f in kept] == ["g"]

    @pytest.mark.parametrize("budget", [0, 1, 2, 3, 4, 7, 100])
    def test_result_is_suffix_and_within_budget(self, budget: int):
        estimator = WordCountEstimator()
        texts = ["a b", "c", "d e f", "g h"]
        transformer = LastMaxTokenSizeContentTransformer(estimator, budget, [SHORT])
        ctx = PromptContext.of("q").add_contents(SHORT, fragments(*texts))

        kept = [f.text for f in transformer.transform(ctx).get_contents(SHORT)]

        assert kept == texts[len(texts) - len(kept):]
        assert sum(estimator.estimate(t) for t in kept) <= budget

    def test_other_tags_untouched(self):
        transformer = LastMaxTokenSizeContentTransformer(WordCountEstimator(), 0, [SHORT])
        ctx = PromptContext.of("q").add_contents(ContentType.EXTERNAL_KNOWLEDGE, fragments("x y z"))

        assert transformer.transform(ctx).get_contents(ContentType.EXTERNAL_KNOWLEDGE)[0].text == "x y z"

    def test_sort_key_applied_before_truncation(self):
        transformer = LastMaxTokenSizeContentTransformer(
            WordCountEstimator(), 1, [SHORT], sort_key=lambda f: f.metadata["score"]
        )
        ctx = PromptContext.of("q").add_contents(SHORT, [
            Fragment("best", {"score": 0.9}),
            Fragment("worst", {"score": 0.1}),
        ])

        assert [f.text for f in transformer.transform(ctx).get_contents(SHORT)] == ["best"]

    def test_negative_budget_rejected(self):
        with pytest.raises(ValueError):
            LastMaxTokenSizeContentTransformer(WordCountEstimator(), -1, [SHORT])
