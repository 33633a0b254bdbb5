"""Embedding service contract and an HTTP client for it."""

from __future__ import annotations

import logging
import os
from typing import Protocol, runtime_checkable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_EMBEDDING_URL = "https://api.openai.com/v1"
DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


@runtime_checkable
class Embedder(Protocol):
    """Anything that turns text into fixed-length vectors."""

    async def embed(self, text: str) -> list[float]: ...

    async def embed_many(self, texts: list[str]) -> list[list[float]]: ...


class HttpEmbedder:
    """Embedder for any OpenAI-compatible ``/embeddings`` endpoint.

    Args:
        base_url: API root, e.g. ``https://api.openai.com/v1``.
        model: Embedding model name.
        api_key: Bearer token; defaults to ``RAGENT_EMBEDDING_API_KEY``.
        batch_size: Maximum texts per request.
        client: Optional preconfigured ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_EMBEDDING_URL,
        model: str = DEFAULT_EMBEDDING_MODEL,
        api_key: str | None = None,
        batch_size: int = 64,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.batch_size = batch_size
        api_key = api_key or os.getenv("RAGENT_EMBEDDING_API_KEY")
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers)

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_many([text]))[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in batches, preserving input order.

        Raises:
            httpx.HTTPError: If the service is unreachable or rejects the request.
            ValueError: If the response does not hold one vector per input.
        """
        vectors: list[list[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i : i + self.batch_size]
            response = await self._client.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": batch},
            )
            response.raise_for_status()
            data = sorted(response.json().get("data", []), key=lambda d: d.get("index", 0))
            if len(data) != len(batch):
                raise ValueError(
                    f"Embedding service returned {len(data)} vectors for {len(batch)} inputs"
                )
            vectors.extend([float(x) for x in item["embedding"]] for item in data)
        logger.debug("Embedded %d texts with %s", len(texts), self.model)
        return vectors

    async def aclose(self) -> None:
        await self._client.aclose()
