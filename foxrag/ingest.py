"""Bounded ingestion queue with a single consumer.

Producers (the ``POST /event`` handler) enqueue raw log lines; exactly
one consumer drains them into the document store in arrival order, so
store writes never run concurrently with each other. A full queue
suspends the producer; nothing is dropped.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.errors import EmbeddingError, QueueClosedError, StoreError
from contracts.vector_db import Document, DocumentStore

_CLOSED = object()


@dataclass
class DeadLetter:
    content: str
    error: str
    attempts: int


class IngestionQueue:
    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        capacity: int = 4096,
        *,
        logger: AuditLogger | None = None,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._store = store
        self._collection = collection
        self._capacity = capacity
        self._logger = logger
        self._max_retries = max_retries
        self._backoff = backoff_seconds
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._finished = False
        self._putters = 0
        self._no_putters = asyncio.Event()
        self._no_putters.set()
        self.processed = 0
        self.dead_letters: list[DeadLetter] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def size(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def finished(self) -> bool:
        """True once the consumer has drained the queue after close()."""
        return self._finished

    # ── producer side ────────────────────────────────────────────────

    async def enqueue(self, text: str) -> None:
        """Accept *text* into the buffer, waiting while the queue is full."""
        if self._closed:
            raise QueueClosedError("Ingestion queue is closed")
        self._putters += 1
        self._no_putters.clear()
        try:
            await self._queue.put(text)
        finally:
            self._putters -= 1
            if not self._putters:
                self._no_putters.set()

    async def close(self) -> None:
        """Stop accepting items; the consumer exits after draining the rest."""
        if self._closed:
            return
        self._closed = True
        # producers already waiting for a slot must land ahead of the sentinel
        await self._no_putters.wait()
        await self._queue.put(_CLOSED)

    async def join(self) -> None:
        """Wait until every accepted item has been processed."""
        await self._queue.join()

    # ── consumer side ────────────────────────────────────────────────

    async def run(self) -> None:
        """Consume items one at a time, in order, until closed and drained."""
        while True:
            item = await self._queue.get()
            try:
                if item is _CLOSED:
                    self._finished = True
                    return
                await self._store_with_retry(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    async def _store_with_retry(self, content: str) -> Document | None:
        attempt = 0
        delay = self._backoff
        while True:
            attempt += 1
            try:
                doc = await self._store.insert(self._collection, content)
            except (EmbeddingError, StoreError) as exc:
                error = f"{type(exc).__name__}: {exc}"
                if attempt > self._max_retries:
                    self.dead_letters.append(DeadLetter(content, error, attempt))
                    self._audit(AuditEvent.EVENT_DEAD_LETTER, {"error": error, "attempts": attempt})
                    return None
                self._audit(AuditEvent.EVENT_RETRY, {"error": error, "attempt": attempt})
                await asyncio.sleep(delay)
                delay *= 2
            else:
                self.processed += 1
                self._audit(AuditEvent.EVENT_STORED, {"id": doc.id})
                return doc

    def _audit(self, event: AuditEvent, detail: dict) -> None:
        if self._logger is not None:
            self._logger.log(
                AuditEntry(
                    event=event,
                    detail={"collection": self._collection, **detail},
                )
            )
