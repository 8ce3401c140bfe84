"""In-memory document store.

Keeps every collection in process memory. Nothing survives a restart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from contracts.embedding import EmbeddingAdapter
from contracts.errors import EmbeddingError, StoreError
from contracts.vector_db import Collection, Document, DocumentStore, SearchResult, content_id

from foxrag.vector_adapters.similarity import rank


@dataclass
class _MemoryCollection:
    name: str
    embedder: EmbeddingAdapter
    documents: dict[str, Document] = field(default_factory=dict)

    def info(self) -> Collection:
        return Collection(
            name=self.name,
            embedding_model=self.embedder.model_name(),
            count=len(self.documents),
        )


class MemoryDocumentStore(DocumentStore):
    """Document store backed by plain dicts."""

    def __init__(self) -> None:
        self._collections: dict[str, _MemoryCollection] = {}

    def _get(self, name: str) -> _MemoryCollection:
        try:
            return self._collections[name]
        except KeyError:
            raise StoreError(f"Unknown collection: {name}") from None

    # ── get_or_create ─────────────────────────────────────────────────

    async def get_or_create(self, name: str, embedder: EmbeddingAdapter) -> Collection:
        col = self._collections.get(name)
        if col is None:
            col = _MemoryCollection(name=name, embedder=embedder)
            self._collections[name] = col
        elif col.embedder.model_name() != embedder.model_name():
            raise StoreError(
                f"Collection '{name}' uses embedder '{col.embedder.model_name()}', "
                f"not '{embedder.model_name()}'"
            )
        return col.info()

    # ── insert ────────────────────────────────────────────────────────

    async def insert(self, collection: str, content: str) -> Document:
        col = self._get(collection)
        doc_id = content_id(content)
        existing = col.documents.get(doc_id)
        if existing is not None:
            return existing

        vectors = await col.embedder.embed([content])
        if not vectors:
            raise EmbeddingError("Embedder returned no vector")
        doc = Document(id=doc_id, content=content, embedding=tuple(vectors[0]))
        # setdefault: a concurrent insert of the same content may have won
        return col.documents.setdefault(doc_id, doc)

    # ── retrieve_all ──────────────────────────────────────────────────

    async def retrieve_all(
        self,
        collection: str,
        query: str,
        limit: int | None = None,
        on_embedded: Callable[[], None] | None = None,
    ) -> list[SearchResult]:
        col = self._get(collection)
        if not col.documents:
            if on_embedded is not None:
                on_embedded()
            return []
        vectors = await col.embedder.embed([query])
        if not vectors:
            raise EmbeddingError("Embedder returned no vector")
        if on_embedded is not None:
            on_embedded()
        return rank(vectors[0], list(col.documents.values()), limit=limit)

    # ── count / list_collections ─────────────────────────────────────

    async def count(self, collection: str) -> int:
        return len(self._get(collection).documents)

    async def list_collections(self) -> list[str]:
        return list(self._collections)
