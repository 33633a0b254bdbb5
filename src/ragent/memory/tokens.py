"""Token count estimation."""

from typing import Protocol, runtime_checkable

import tiktoken


@runtime_checkable
class TokenCountEstimator(Protocol):
    """Pure function from text to a model-specific token count."""

    def estimate(self, text: str) -> int: ...


class TiktokenEstimator:
    """Counts tokens with a tiktoken encoding (``cl100k_base`` by default).

    The encoding is loaded on first use.
    """

    def __init__(self, encoding_name: str = "cl100k_base") -> None:
        self.encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))
