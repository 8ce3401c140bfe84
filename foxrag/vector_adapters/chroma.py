"""ChromaDB document store.

Wraps a chromadb client (ephemeral, or persistent when a path is given).
Vectors are always computed by our own embedder and handed to Chroma
explicitly; the embedder's model name is pinned in the collection
metadata so a collection never mixes embedding spaces.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import chromadb

from contracts.embedding import EmbeddingAdapter
from contracts.errors import EmbeddingError, StoreError
from contracts.vector_db import Collection, Document, DocumentStore, SearchResult, content_id

_MODEL_KEY = "embedding_model"


class ChromaDocumentStore(DocumentStore):
    """Document store backed by ChromaDB."""

    def __init__(self, persist_path: str | None = None) -> None:
        if persist_path:
            self._client = chromadb.PersistentClient(path=persist_path)
        else:
            self._client = chromadb.EphemeralClient()
        self._embedders: dict[str, EmbeddingAdapter] = {}

    def _collection(self, name: str) -> tuple[Any, EmbeddingAdapter]:
        embedder = self._embedders.get(name)
        if embedder is None:
            raise StoreError(f"Unknown collection: {name}")
        return self._client.get_collection(name=name, embedding_function=None), embedder

    # ── get_or_create ─────────────────────────────────────────────────

    async def get_or_create(self, name: str, embedder: EmbeddingAdapter) -> Collection:
        model = embedder.model_name()

        def _get_or_create() -> Collection:
            existing = {c.name for c in self._client.list_collections()}
            if name in existing:
                col = self._client.get_collection(name=name, embedding_function=None)
                bound = (col.metadata or {}).get(_MODEL_KEY)
                if bound is None:
                    # chroma rejects hnsw:* keys in modify(); they stay as created
                    metadata = {
                        k: v
                        for k, v in (col.metadata or {}).items()
                        if not k.startswith("hnsw:")
                    }
                    metadata[_MODEL_KEY] = model
                    col.modify(metadata=metadata)
                elif bound != model:
                    raise StoreError(
                        f"Collection '{name}' uses embedder '{bound}', not '{model}'"
                    )
            else:
                col = self._client.create_collection(
                    name=name,
                    metadata={_MODEL_KEY: model, "hnsw:space": "cosine"},
                    embedding_function=None,
                )
            return Collection(name=name, embedding_model=model, count=col.count())

        info = await asyncio.to_thread(_get_or_create)
        self._embedders[name] = embedder
        return info

    # ── insert ────────────────────────────────────────────────────────

    async def insert(self, collection: str, content: str) -> Document:
        col, embedder = self._collection(collection)
        doc_id = content_id(content)

        def _lookup() -> Document | None:
            found = col.get(ids=[doc_id], include=["documents", "embeddings"])
            if not found["ids"]:
                return None
            return Document(
                id=doc_id,
                content=found["documents"][0],
                embedding=tuple(float(x) for x in found["embeddings"][0]),
            )

        existing = await asyncio.to_thread(_lookup)
        if existing is not None:
            return existing

        vectors = await embedder.embed([content])
        if not vectors:
            raise EmbeddingError("Embedder returned no vector")
        doc = Document(id=doc_id, content=content, embedding=tuple(vectors[0]))

        def _upsert() -> None:
            col.upsert(
                ids=[doc.id],
                documents=[doc.content],
                embeddings=[list(doc.embedding)],
            )

        await asyncio.to_thread(_upsert)
        return doc

    # ── retrieve_all ──────────────────────────────────────────────────

    async def retrieve_all(
        self,
        collection: str,
        query: str,
        limit: int | None = None,
        on_embedded: Callable[[], None] | None = None,
    ) -> list[SearchResult]:
        col, embedder = self._collection(collection)
        total = await asyncio.to_thread(col.count)
        if total == 0:
            if on_embedded is not None:
                on_embedded()
            return []

        vectors = await embedder.embed([query])
        if not vectors:
            raise EmbeddingError("Embedder returned no vector")
        if on_embedded is not None:
            on_embedded()
        n_results = total if limit is None else min(limit, total)

        def _query() -> list[SearchResult]:
            result = col.query(
                query_embeddings=[list(vectors[0])],
                n_results=n_results,
                include=["documents", "distances"],
            )
            ids = result.get("ids", [[]])[0]
            documents = result.get("documents", [[]])[0]
            distances = result.get("distances", [[]])[0]
            return [
                SearchResult(
                    id=doc_id,
                    content=documents[i],
                    similarity=1.0 - distances[i],
                )
                for i, doc_id in enumerate(ids)
            ]

        return await asyncio.to_thread(_query)

    # ── count / list_collections ─────────────────────────────────────

    async def count(self, collection: str) -> int:
        col, _ = self._collection(collection)
        return await asyncio.to_thread(col.count)

    async def list_collections(self) -> list[str]:
        def _list() -> list[str]:
            return [c.name for c in self._client.list_collections()]

        return await asyncio.to_thread(_list)
