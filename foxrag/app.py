"""FoxRAG FastAPI server.

    POST /event   raw log line -> ingestion queue
    GET  /event   "<count> events"
    POST /query   raw question -> answer text
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from contracts.audit import AuditEntry, AuditEvent
from contracts.embedding import EmbeddingAdapter
from contracts.errors import (
    EmbeddingError,
    FoxRagError,
    ModelError,
    QueryTimeoutError,
    QueueClosedError,
    StoreError,
    TransportError,
)
from contracts.manifest import Manifest
from contracts.vector_db import DocumentStore

from foxrag.audit.logger import JsonlAuditLogger
from foxrag.history import ConversationHistory
from foxrag.ingest import IngestionQueue
from foxrag.manifest_loader import resolve_manifest
from foxrag.model_adapters.ollama import OllamaAdapter
from foxrag.orchestrator import QueryOrchestrator
from foxrag.prompts import SYSTEM_PROMPT
from foxrag.supervisor import supervise

VERSION = "0.1.0"

# ── Module-level state (set during lifespan) ─────────────────────────

_manifest: Manifest | None = None
_logger: JsonlAuditLogger | None = None
_store: DocumentStore | None = None
_queue: IngestionQueue | None = None
_history: ConversationHistory | None = None
_orchestrator: QueryOrchestrator | None = None
_start_time: float = 0.0

_STATUS: dict[type[FoxRagError], int] = {
    TransportError: 400,
    StoreError: 500,
    EmbeddingError: 502,
    ModelError: 502,
    QueueClosedError: 503,
    QueryTimeoutError: 504,
}


def _create_embedding_adapter(manifest: Manifest) -> EmbeddingAdapter:
    """Create an embedding adapter from manifest config."""
    backend = manifest.embedding.backend
    if backend == "ollama":
        from foxrag.embedding_adapters.ollama import OllamaEmbeddingAdapter
        return OllamaEmbeddingAdapter(
            base_url=manifest.models.base_url, model=manifest.embedding.model
        )
    raise ValueError(f"Unknown embedding backend: {backend}")


def _create_document_store(manifest: Manifest) -> DocumentStore:
    """Create a document store from manifest config."""
    backend = manifest.vector_db.backend
    if backend == "memory":
        from foxrag.vector_adapters.memory import MemoryDocumentStore
        return MemoryDocumentStore()
    if backend == "chroma":
        from foxrag.vector_adapters.chroma import ChromaDocumentStore
        return ChromaDocumentStore(persist_path=manifest.vector_db.persist_path)
    raise ValueError(f"Unknown vector_db backend: {backend}")


def _create_model_adapter(manifest: Manifest) -> OllamaAdapter:
    """Create the chat model adapter from manifest config."""
    backend = manifest.models.backend
    if backend == "ollama":
        return OllamaAdapter(base_url=manifest.models.base_url)
    raise ValueError(f"Unknown model backend: {backend}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise all components on startup; drain ingestion on shutdown."""
    global _manifest, _logger, _store, _queue, _history, _orchestrator, _start_time  # noqa: PLW0603

    _start_time = time.time()
    _manifest = resolve_manifest()
    _logger = JsonlAuditLogger(_manifest.audit.path, app=_manifest.app.name)

    collection = _manifest.vector_db.collection
    embedder = _create_embedding_adapter(_manifest)
    _store = _create_document_store(_manifest)
    await _store.get_or_create(collection, embedder)

    _queue = IngestionQueue(
        _store,
        collection,
        capacity=_manifest.ingest.queue_size,
        logger=_logger,
        max_retries=_manifest.ingest.max_retries,
        backoff_seconds=_manifest.ingest.backoff_seconds,
    )
    _history = ConversationHistory(SYSTEM_PROMPT)
    _orchestrator = QueryOrchestrator(
        _store,
        collection,
        _create_model_adapter(_manifest),
        _history,
        model=_manifest.models.default,
        options=_manifest.models.options,
        stream=_manifest.models.stream,
        keep_alive=_manifest.models.keep_alive_seconds,
        retrieval_limit=_manifest.vector_db.retrieval_limit,
        timeout=_manifest.query.timeout_seconds,
        logger=_logger,
        redact_prompt=_manifest.audit.redact_prompt,
    )
    _orchestrator.start()

    consumer = asyncio.create_task(
        supervise("ingest", _queue.run, _logger, backoff_seconds=_manifest.ingest.backoff_seconds),
        name="ingest-consumer",
    )
    warm_up: asyncio.Task[bool] | None = None
    if _manifest.models.preload:
        warm_up = asyncio.create_task(_orchestrator.warm_up(), name="model-warm-up")

    _logger.log(
        AuditEntry(
            event=AuditEvent.SERVER_START,
            model=_manifest.models.default,
            detail={
                "collection": collection,
                "embedding_model": embedder.model_name(),
                "vector_db": _manifest.vector_db.backend,
            },
        )
    )

    try:
        yield
    finally:
        await _queue.close()
        try:
            await asyncio.wait_for(consumer, _manifest.ingest.drain_timeout_seconds)
        except asyncio.TimeoutError:
            pass  # wait_for already cancelled the consumer
        if warm_up is not None and not warm_up.done():
            warm_up.cancel()
        await _orchestrator.stop()
        _logger.log(
            AuditEntry(
                event=AuditEvent.SERVER_STOP,
                detail={"undrained": _queue.size, "dead_letters": len(_queue.dead_letters)},
            )
        )


app = FastAPI(title="FoxRAG", version=VERSION, lifespan=lifespan)


# ── Helpers ──────────────────────────────────────────────────────────


def _http_error(exc: FoxRagError) -> HTTPException:
    for cls in type(exc).__mro__:
        if cls in _STATUS:
            return HTTPException(status_code=_STATUS[cls], detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _require_runtime() -> None:
    if _orchestrator is None or _queue is None or _store is None or _manifest is None:
        raise HTTPException(status_code=503, detail="Runtime not initialised")


async def _read_text(request: Request) -> str:
    try:
        body = await request.body()
    except ClientDisconnect as exc:
        raise TransportError("Client disconnected before the body was read") from exc
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise TransportError(f"Request body is not valid UTF-8: {exc}") from exc


# ── Endpoints ────────────────────────────────────────────────────────


@app.get("/event", response_class=PlainTextResponse)
async def event_count() -> str:
    """Number of events stored in the collection."""
    _require_runtime()
    try:
        count = await _store.count(_manifest.vector_db.collection)
    except FoxRagError as exc:
        raise _http_error(exc) from exc
    return f"{count} events"


@app.post("/event")
async def event_submit(request: Request) -> Response:
    """Queue one raw event. Returns once accepted, not once stored."""
    _require_runtime()
    try:
        text = await _read_text(request)
        await _queue.enqueue(text)
    except FoxRagError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=200)


@app.post("/query", response_class=PlainTextResponse)
async def query(request: Request) -> str:
    """Answer a question from the stored events and the conversation so far."""
    _require_runtime()
    try:
        question = await _read_text(request)
        return await _orchestrator.ask(question)
    except FoxRagError as exc:
        raise _http_error(exc) from exc


@app.get("/health")
async def health() -> dict[str, Any]:
    """Extended health-check endpoint."""
    result: dict[str, Any] = {"status": "ok", "version": VERSION}
    result["uptime_seconds"] = round(time.time() - _start_time, 1) if _start_time else 0

    if _manifest is None or _queue is None or _store is None or _history is None:
        result["status"] = "starting"
        return result

    result["models"] = {
        "chat": _manifest.models.default,
        "embedding": _manifest.embedding.model,
    }
    result["queue"] = {
        "size": _queue.size,
        "capacity": _queue.capacity,
        "processed": _queue.processed,
        "dead_letters": len(_queue.dead_letters),
    }
    result["documents"] = await _store.count(_manifest.vector_db.collection)
    result["history_length"] = len(_history)

    # Ollama status
    ollama_status: dict[str, Any] = {"reachable": False, "models": []}
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            resp = await client.get(f"{_manifest.models.base_url}/api/tags")
            if resp.status_code == 200:
                ollama_status["reachable"] = True
                data = resp.json()
                ollama_status["models"] = [
                    m.get("name", "") for m in data.get("models", [])
                ]
    except httpx.HTTPError:
        pass
    result["ollama"] = ollama_status

    return result
