"""Unit tests for the ChromaDB document store (ephemeral client)."""

from __future__ import annotations

import uuid

import pytest

pytest.importorskip("chromadb")

from contracts.errors import StoreError  # noqa: E402
from contracts.vector_db import content_id  # noqa: E402
from foxrag.vector_adapters.chroma import ChromaDocumentStore  # noqa: E402

from conftest import KeywordEmbedder  # noqa: E402


def _name() -> str:
    # ephemeral clients share one in-process backend; keep collections apart
    return f"fox-{uuid.uuid4().hex[:8]}"


class TestChromaDocumentStore:
    @pytest.mark.asyncio
    async def test_insert_count_and_idempotency(self, embedder: KeywordEmbedder) -> None:
        store = ChromaDocumentStore()
        name = _name()
        await store.get_or_create(name, embedder)

        doc = await store.insert(name, "host1 login failed")
        again = await store.insert(name, "host1 login failed")

        assert doc.id == again.id == content_id("host1 login failed")
        assert await store.count(name) == 1
        assert len(embedder.calls) == 1

    @pytest.mark.asyncio
    async def test_retrieve_all_ranked(self, embedder: KeywordEmbedder) -> None:
        store = ChromaDocumentStore()
        name = _name()
        await store.get_or_create(name, embedder)
        await store.insert(name, "host2 disk full")
        await store.insert(name, "host1 login failed")

        results = await store.retrieve_all(name, "failed login")
        assert len(results) == 2
        assert results[0].content == "host1 login failed"

    @pytest.mark.asyncio
    async def test_empty_collection(self, embedder: KeywordEmbedder) -> None:
        store = ChromaDocumentStore()
        name = _name()
        await store.get_or_create(name, embedder)
        assert await store.retrieve_all(name, "anything") == []

    @pytest.mark.asyncio
    async def test_embedder_mismatch(self, embedder: KeywordEmbedder) -> None:
        store = ChromaDocumentStore()
        name = _name()
        await store.get_or_create(name, embedder)
        with pytest.raises(StoreError, match="uses embedder"):
            await store.get_or_create(name, KeywordEmbedder(name="other-embed"))

    @pytest.mark.asyncio
    async def test_unknown_collection(self) -> None:
        store = ChromaDocumentStore()
        with pytest.raises(StoreError, match="Unknown collection"):
            await store.count(_name())

    @pytest.mark.asyncio
    async def test_unbound_collection_is_stamped(self, tmp_path, embedder: KeywordEmbedder) -> None:
        import chromadb

        path = str(tmp_path / "chroma")
        name = _name()
        chromadb.PersistentClient(path=path).create_collection(
            name=name, metadata={"owner": "ops"}, embedding_function=None
        )

        store = ChromaDocumentStore(persist_path=path)
        await store.get_or_create(name, embedder)

        metadata = store._client.get_collection(name=name, embedding_function=None).metadata
        assert metadata["embedding_model"] == "keyword-embed"
        assert metadata["owner"] == "ops"
        with pytest.raises(StoreError, match="uses embedder"):
            await ChromaDocumentStore(persist_path=path).get_or_create(
                name, KeywordEmbedder(name="other-embed")
            )
