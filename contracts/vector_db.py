"""Document store contracts.

Defines the abstract interface for semantic document stores and the
shared data models for documents, collections and search results.
"""

from __future__ import annotations

import hashlib
from abc import ABC, abstractmethod
from typing import Callable

from pydantic import BaseModel, ConfigDict

from contracts.embedding import EmbeddingAdapter


def content_id(content: str) -> str:
    """Content-addressed document id: identical text always maps to the same id."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


# ── Data models ──────────────────────────────────────────────────────


class Document(BaseModel):
    """A stored record. The embedding is computed once, at insertion."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    embedding: tuple[float, ...]


class SearchResult(BaseModel):
    """A single result from a similarity query."""

    id: str
    content: str
    similarity: float


class Collection(BaseModel):
    """A named set of documents sharing one embedding space."""

    name: str
    embedding_model: str
    count: int = 0


# ── Abstract store ───────────────────────────────────────────────────


class DocumentStore(ABC):
    """Abstract base class for semantic document stores.

    Insert and retrieve are not mutually exclusive: a retrieval running
    alongside an insert may or may not observe the new document.
    """

    @abstractmethod
    async def get_or_create(self, name: str, embedder: EmbeddingAdapter) -> Collection:
        """Return the named collection, creating it bound to *embedder*.

        Raises StoreError if it exists with a different embedder.
        """
        ...

    @abstractmethod
    async def insert(self, collection: str, content: str) -> Document:
        """Embed and upsert *content*. Re-inserting identical content is a no-op."""
        ...

    @abstractmethod
    async def retrieve_all(
        self,
        collection: str,
        query: str,
        limit: int | None = None,
        on_embedded: Callable[[], None] | None = None,
    ) -> list[SearchResult]:
        """Rank documents by similarity to *query*, most relevant first.

        Returns every document unless *limit* is given. *on_embedded* is
        called once the query vector is known, before ranking starts; an
        empty collection skips embedding but still calls it.
        """
        ...

    @abstractmethod
    async def count(self, collection: str) -> int:
        """Number of documents stored in the collection."""
        ...

    @abstractmethod
    async def list_collections(self) -> list[str]:
        """List all available collections."""
        ...
