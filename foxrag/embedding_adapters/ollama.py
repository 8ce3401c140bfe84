"""Ollama embedding adapter.

Proxies embedding requests to a local Ollama instance via httpx.
"""

from __future__ import annotations

import json

import httpx

from contracts.embedding import EmbeddingAdapter
from contracts.errors import EmbeddingError


class OllamaEmbeddingAdapter(EmbeddingAdapter):
    """Async adapter for the Ollama /api/embed endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._timeout = timeout

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for a list of texts via Ollama."""
        payload = {"model": self._model, "input": texts}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(
                    f"{self._base_url}/api/embed", json=payload
                )
        except httpx.ConnectError as exc:
            raise EmbeddingError(
                f"Cannot connect to Ollama at {self._base_url}: {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingError(f"Ollama embed request failed: {exc}") from exc

        if resp.status_code != 200:
            raise EmbeddingError(
                f"Ollama embed request failed ({resp.status_code}): {resp.text}"
            )

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise EmbeddingError(f"Malformed response from Ollama: {resp.text!r}") from exc
        if not isinstance(data, dict):
            raise EmbeddingError(f"Unexpected response from Ollama: {data!r}")
        embeddings = data.get("embeddings")
        if not isinstance(embeddings, list) or len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Ollama returned {len(embeddings or [])} embeddings for {len(texts)} inputs"
            )
        return embeddings

    def model_name(self) -> str:
        """Return the name of the embedding model."""
        return self._model
