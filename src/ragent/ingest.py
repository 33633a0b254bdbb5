"""Loading external knowledge into a vector store."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from .context import ContentType, Fragment
from .context.fragments import tag_key
from .memory import Embedder, TokenCountEstimator, VectorRecord, VectorStore

logger = logging.getLogger(__name__)

_SENTENCE_END = re.compile(r"(?<=[.!?])\s+")


class JsonReader:
    """Reads a JSON array of objects into fragments.

    Args:
        path: JSON file holding a list of objects (or a single object).
        keys: Fields joined into the fragment text; all fields when empty.
    """

    def __init__(self, path: Path | str, keys: Iterable[str] = ()) -> None:
        self.path = Path(path)
        self.keys = list(keys)

    def read(self) -> list[Fragment]:
        data = json.loads(self.path.read_text(encoding="utf-8"))
        items = data if isinstance(data, list) else [data]
        fragments = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                raise ValueError(f"{self.path}: item {index} is not an object")
            keys = self.keys or list(item)
            text = "\n".join(f"{key}: {item[key]}" for key in keys if key in item)
            fragments.append(Fragment(text, {"source": self.path.name, "index": index}))
        return fragments


class TokenTextSplitter:
    """Splits fragments into chunks of at most ``chunk_size`` tokens.

    Text is cut on sentence boundaries. A sentence longer than the budget is
    cut between words; only a single word over budget can exceed it.
    """

    def __init__(self, estimator: TokenCountEstimator, chunk_size: int = 800) -> None:
        self.estimator = estimator
        self.chunk_size = chunk_size

    def split_text(self, text: str) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        size = 0
        for sentence in _SENTENCE_END.split(text.strip()):
            if not sentence:
                continue
            tokens = self.estimator.estimate(sentence)
            if current and size + tokens > self.chunk_size:
                chunks.append(" ".join(current))
                current, size = [], 0
            if tokens > self.chunk_size:
                chunks.extend(self._split_words(sentence))
                continue
            current.append(sentence)
            size += tokens
        if current:
            chunks.append(" ".join(current))
        return chunks

    def _split_words(self, sentence: str) -> list[str]:
        chunks: list[str] = []
        current: list[str] = []
        for word in sentence.split():
            if current and self.estimator.estimate(" ".join([*current, word])) > self.chunk_size:
                chunks.append(" ".join(current))
                current = []
            current.append(word)
        if current:
            chunks.append(" ".join(current))
        return chunks

    def split(self, fragments: Iterable[Fragment]) -> list[Fragment]:
        out = []
        for fragment in fragments:
            for i, chunk in enumerate(self.split_text(fragment.text)):
                out.append(Fragment(chunk, {**fragment.metadata, "chunk_index": i}))
        return out


def tag_as(tag: str | ContentType, fragments: Iterable[Fragment]) -> list[Fragment]:
    """Mark fragments with a content-type tag in their metadata."""
    return [f.annotate("content_type", tag_key(tag)) for f in fragments]


async def ingest(
    store: VectorStore,
    embedder: Embedder,
    fragments: list[Fragment],
    tag: str | ContentType = ContentType.EXTERNAL_KNOWLEDGE,
) -> int:
    """Embed fragments and upsert them into the store. Returns the count."""
    if not fragments:
        return 0
    fragments = tag_as(tag, fragments)
    embeddings = await embedder.embed_many([f.text for f in fragments])
    await store.upsert([
        VectorRecord(id=f.id, text=f.text, embedding=e, metadata=dict(f.metadata))
        for f, e in zip(fragments, embeddings)
    ])
    logger.info("Ingested %d fragments tagged %s", len(fragments), tag_key(tag))
    return len(fragments)
