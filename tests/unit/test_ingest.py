"""Unit tests for the bounded ingestion queue and its consumer."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from contracts.audit import AuditEvent
from contracts.errors import QueueClosedError
from contracts.vector_db import Document, content_id
from foxrag.audit.logger import JsonlAuditLogger
from foxrag.ingest import IngestionQueue
from foxrag.vector_adapters.memory import MemoryDocumentStore

from conftest import KeywordEmbedder


class RecordingStore(MemoryDocumentStore):
    """Memory store that remembers the order inserts completed in."""

    def __init__(self, delay: float = 0.0) -> None:
        super().__init__()
        self.delay = delay
        self.completed: list[str] = []
        self.active = 0
        self.max_active = 0

    async def insert(self, collection: str, content: str) -> Document:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            doc = await super().insert(collection, content)
            self.completed.append(content)
            return doc
        finally:
            self.active -= 1


async def _store(embedder: KeywordEmbedder, delay: float = 0.0) -> RecordingStore:
    store = RecordingStore(delay=delay)
    await store.get_or_create("fox", embedder)
    return store


class TestIngestionQueue:
    def test_capacity_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            IngestionQueue(MemoryDocumentStore(), "fox", capacity=0)

    @pytest.mark.asyncio
    async def test_fifo_order(self, embedder: KeywordEmbedder) -> None:
        store = await _store(embedder, delay=0.001)
        queue = IngestionQueue(store, "fox", capacity=8)
        consumer = asyncio.create_task(queue.run())

        for item in ["A", "B", "C"]:
            await queue.enqueue(item)
        await queue.join()

        assert store.completed == ["A", "B", "C"]
        assert store.max_active == 1
        assert queue.processed == 3
        await queue.close()
        await consumer

    @pytest.mark.asyncio
    async def test_duplicate_events_stored_once(self, embedder: KeywordEmbedder) -> None:
        store = await _store(embedder)
        queue = IngestionQueue(store, "fox")
        consumer = asyncio.create_task(queue.run())

        await queue.enqueue("host1 login failed")
        await queue.enqueue("host1 login failed")
        await queue.close()
        await consumer

        assert await store.count("fox") == 1

    @pytest.mark.asyncio
    async def test_backpressure_blocks_producer(self, embedder: KeywordEmbedder) -> None:
        store = await _store(embedder)
        queue = IngestionQueue(store, "fox", capacity=2)

        await queue.enqueue("one")
        await queue.enqueue("two")
        assert queue.size == 2

        blocked = asyncio.create_task(queue.enqueue("three"))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        consumer = asyncio.create_task(queue.run())
        await asyncio.wait_for(blocked, 1.0)
        await queue.join()

        assert store.completed == ["one", "two", "three"]
        await queue.close()
        await consumer

    @pytest.mark.asyncio
    async def test_close_drains_then_exits(self, embedder: KeywordEmbedder) -> None:
        store = await _store(embedder)
        queue = IngestionQueue(store, "fox")
        for i in range(5):
            await queue.enqueue(f"event {i}")
        await queue.close()

        await asyncio.wait_for(queue.run(), 1.0)

        assert queue.finished
        assert len(store.completed) == 5

    @pytest.mark.asyncio
    async def test_enqueue_after_close(self, embedder: KeywordEmbedder) -> None:
        queue = IngestionQueue(await _store(embedder), "fox")
        await queue.close()
        assert queue.closed
        with pytest.raises(QueueClosedError):
            await queue.enqueue("late")

    @pytest.mark.asyncio
    async def test_close_keeps_items_from_blocked_producers(
        self, embedder: KeywordEmbedder
    ) -> None:
        store = await _store(embedder)
        queue = IngestionQueue(store, "fox", capacity=1)
        await queue.enqueue("A")

        producer = asyncio.create_task(queue.enqueue("B"))
        await asyncio.sleep(0.01)
        assert not producer.done()

        closer = asyncio.create_task(queue.close())
        await asyncio.sleep(0.01)
        assert not closer.done()

        consumer = asyncio.create_task(queue.run())
        await asyncio.wait_for(asyncio.gather(producer, closer), 1.0)
        await asyncio.wait_for(consumer, 1.0)
        await asyncio.wait_for(queue.join(), 1.0)

        assert store.completed == ["A", "B"]
        assert queue.finished
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_is_retried(self, tmp_path: Path) -> None:
        embedder = KeywordEmbedder(fail_times=2)
        store = await _store(embedder)
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        queue = IngestionQueue(store, "fox", logger=logger, max_retries=3, backoff_seconds=0)

        await queue.enqueue("host1 login failed")
        await queue.close()
        await queue.run()

        assert await store.count("fox") == 1
        assert queue.dead_letters == []
        assert len(logger.query_by_event(AuditEvent.EVENT_RETRY)) == 2
        stored = logger.query_by_event(AuditEvent.EVENT_STORED)
        assert stored[0].detail["id"] == content_id("host1 login failed")

    @pytest.mark.asyncio
    async def test_exhausted_retries_dead_letter_and_keep_consuming(self, tmp_path: Path) -> None:
        embedder = KeywordEmbedder(fail_times=2)
        store = await _store(embedder)
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        queue = IngestionQueue(store, "fox", logger=logger, max_retries=1, backoff_seconds=0)

        await queue.enqueue("poison")
        await queue.enqueue("host1 login failed")
        await queue.close()
        await queue.run()

        assert [d.content for d in queue.dead_letters] == ["poison"]
        assert queue.dead_letters[0].attempts == 2
        assert store.completed == ["host1 login failed"]
        assert len(logger.query_by_event(AuditEvent.EVENT_DEAD_LETTER)) == 1
