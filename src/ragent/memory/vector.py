"""Vector store contract and an in-process implementation."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class VectorRecord:
    """A document stored with its embedding."""

    id: str
    text: str
    embedding: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ScoredRecord:
    """A query hit; ``score`` is cosine similarity (higher is closer)."""

    record: VectorRecord
    score: float


def matches(metadata: Mapping[str, Any], where: Mapping[str, Any] | None) -> bool:
    """Equality match of every ``where`` item against metadata."""
    if not where:
        return True
    return all(metadata.get(key) == value for key, value in where.items())


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Dimension mismatch: {len(a)} vs {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


@runtime_checkable
class VectorStore(Protocol):
    """Nearest-neighbour index over embedded documents."""

    async def upsert(self, records: list[VectorRecord]) -> None: ...

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        where: Mapping[str, Any] | None = None,
    ) -> list[ScoredRecord]: ...

    async def delete(self, ids: list[str]) -> int: ...


class InMemoryVectorStore:
    """Brute-force cosine search over records held in a dict."""

    def __init__(self) -> None:
        self._records: dict[str, VectorRecord] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, records: list[VectorRecord]) -> None:
        async with self._lock:
            for record in records:
                self._records[record.id] = record

    async def query(
        self,
        embedding: list[float],
        top_k: int,
        where: Mapping[str, Any] | None = None,
    ) -> list[ScoredRecord]:
        async with self._lock:
            candidates = [r for r in self._records.values() if matches(r.metadata, where)]
        scored = [ScoredRecord(r, cosine_similarity(embedding, r.embedding)) for r in candidates]
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored[:top_k]

    async def delete(self, ids: list[str]) -> int:
        async with self._lock:
            removed = 0
            for record_id in ids:
                if self._records.pop(record_id, None) is not None:
                    removed += 1
            return removed

    def __len__(self) -> int:
        return len(self._records)
