"""Query orchestrator — retrieval, prompt assembly and the model call.

Every question goes through one coordinator task that handles queries
strictly one at a time, so the read-snapshot-then-append sequence on
the shared conversation history never interleaves. Callers wait on a
one-shot channel for their answer.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any

from contracts.api import (
    QUERY_TRANSITIONS,
    TERMINAL_STATES,
    ChatOptions,
    ChatRequest,
    QueryState,
    Role,
)
from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.errors import ModelError, QueryTimeoutError, QueueClosedError
from contracts.vector_db import DocumentStore

from foxrag.history import ConversationHistory
from foxrag.model_adapters.ollama import OllamaAdapter
from foxrag.oneshot import ChannelState, OneShot
from foxrag.prompts import build_context, build_query


@dataclass
class QueryJob:
    """One question travelling through the coordinator."""

    question: str
    answer: OneShot[str]
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: QueryState = QueryState.RECEIVED
    context: str = ""
    documents: int = 0

    def advance(self, to: QueryState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Query {self.request_id} already {self.state.value}")
        if to != QueryState.FAILED and QUERY_TRANSITIONS.get(self.state) != to:
            raise RuntimeError(
                f"Illegal query transition {self.state.value} -> {to.value}"
            )
        self.state = to


class QueryOrchestrator:
    """Answers questions against a collection using the shared history."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str,
        adapter: OllamaAdapter,
        history: ConversationHistory,
        *,
        model: str,
        options: ChatOptions | None = None,
        stream: bool = False,
        keep_alive: float = 3600.0,
        retrieval_limit: int | None = None,
        timeout: float | None = None,
        logger: AuditLogger | None = None,
        redact_prompt: bool = False,
    ) -> None:
        self._store = store
        self._collection = collection
        self._adapter = adapter
        self._history = history
        self._model = model
        self._options = options or ChatOptions()
        self._stream = stream
        self._keep_alive = keep_alive
        self._retrieval_limit = retrieval_limit
        self._timeout = timeout
        self._logger = logger
        self._redact_prompt = redact_prompt
        self._jobs: asyncio.Queue[QueryJob] = asyncio.Queue()
        self._coordinator: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._coordinator is not None and not self._coordinator.done()

    @property
    def pending(self) -> int:
        return self._jobs.qsize()

    # ── lifecycle ────────────────────────────────────────────────────

    def start(self) -> None:
        if self.running:
            return
        self._stopped = False
        self._coordinator = asyncio.create_task(self._coordinate(), name="query-coordinator")

    async def stop(self) -> None:
        self._stopped = True
        if self._coordinator is not None:
            self._coordinator.cancel()
            try:
                await self._coordinator
            except asyncio.CancelledError:
                pass
            self._coordinator = None
        while not self._jobs.empty():
            job = self._jobs.get_nowait()
            if not job.answer.done:
                job.answer.fail(QueueClosedError("Query coordinator stopped"))

    # ── public API ───────────────────────────────────────────────────

    async def ask(self, question: str, timeout: float | None = None) -> str:
        """Answer *question*; waits for every query submitted before it."""
        if self._stopped or not self.running:
            raise QueueClosedError("Query coordinator is not running")
        job = QueryJob(question=question, answer=OneShot())
        await self._jobs.put(job)

        deadline = timeout if timeout is not None else self._timeout
        if deadline is None:
            return await job.answer.receive()
        try:
            return await asyncio.wait_for(job.answer.receive(), deadline)
        except asyncio.TimeoutError:
            raise QueryTimeoutError(
                f"Query {job.request_id} timed out after {deadline}s"
            ) from None

    async def warm_up(self, attempts: int = 3, backoff_seconds: float = 1.0) -> bool:
        """Best-effort model preload. Never raises on backend failure."""
        delay = backoff_seconds
        for attempt in range(1, attempts + 1):
            try:
                await self._adapter.preload(self._model, self._keep_alive)
            except ModelError as exc:
                self._audit(
                    AuditEvent.MODEL_PRELOAD_FAILED,
                    detail={"error": str(exc), "attempt": attempt},
                )
                if attempt < attempts:
                    await asyncio.sleep(delay)
                    delay *= 2
            else:
                self._audit(AuditEvent.MODEL_PRELOADED, detail={"attempt": attempt})
                return True
        return False

    # ── coordinator ──────────────────────────────────────────────────

    async def _coordinate(self) -> None:
        while True:
            job = await self._jobs.get()
            if job.answer.done:
                continue  # caller gave up while queued

            task = asyncio.create_task(self._process(job))

            def _abandon(channel: OneShot[str], task: asyncio.Task[str] = task) -> None:
                if channel.state == ChannelState.CLOSED:
                    task.cancel()

            job.answer.add_done_callback(_abandon)
            try:
                await asyncio.wait({task})
            except asyncio.CancelledError:
                task.cancel()
                if not job.answer.done:
                    job.answer.fail(QueueClosedError("Query coordinator stopped"))
                raise

            if job.answer.done or task.cancelled():
                continue
            exc = task.exception()
            if exc is not None:
                job.answer.fail(exc)
            else:
                job.answer.send(task.result())

    async def _process(self, job: QueryJob) -> str:
        self._audit(
            AuditEvent.QUERY_START,
            request_id=job.request_id,
            detail={} if self._redact_prompt else {"question": job.question},
        )
        try:
            answer, chunks = await self._answer(job)
        except asyncio.CancelledError:
            job.advance(QueryState.FAILED)
            self._audit(
                AuditEvent.QUERY_FAILED,
                request_id=job.request_id,
                detail={"error": "cancelled"},
            )
            raise
        except Exception as exc:
            failed_in = job.state
            job.advance(QueryState.FAILED)
            self._audit(
                AuditEvent.QUERY_FAILED,
                request_id=job.request_id,
                detail={"state": failed_in.value, "error": f"{type(exc).__name__}: {exc}"},
            )
            raise

        self._audit(
            AuditEvent.QUERY_END,
            request_id=job.request_id,
            detail={
                "documents": job.documents,
                "chunks": chunks,
                "history_length": len(self._history),
            },
        )
        return answer

    async def _answer(self, job: QueryJob) -> tuple[str, int]:
        job.advance(QueryState.EMBEDDING_QUERY)
        results = await self._store.retrieve_all(
            self._collection,
            job.question,
            limit=self._retrieval_limit,
            on_embedded=lambda: job.advance(QueryState.RETRIEVING),
        )
        job.documents = len(results)
        job.context = build_context(results)

        async with self._history.transaction() as turn:
            turn.append(Role.USER, build_query(job.question, job.context))
            job.advance(QueryState.PROMPT_BUILT)

            request = ChatRequest(
                model=self._model,
                messages=turn.snapshot(),
                options=self._options,
                stream=self._stream,
                keep_alive=self._keep_alive,
            )

            async def on_chunk(_: str) -> None:
                if job.state == QueryState.MODEL_INVOKED:
                    job.advance(QueryState.STREAMING)

            job.advance(QueryState.MODEL_INVOKED)
            result = await self._adapter.chat(request, on_chunk=on_chunk)
            if job.state == QueryState.MODEL_INVOKED:
                job.advance(QueryState.STREAMING)

            turn.append(Role.ASSISTANT, result.content)

        job.advance(QueryState.COMPLETE)
        return result.content, result.chunks

    def _audit(
        self,
        event: AuditEvent,
        request_id: str = "",
        detail: dict[str, Any] | None = None,
    ) -> None:
        if self._logger is None:
            return
        self._logger.log(
            AuditEntry(
                request_id=request_id,
                event=event,
                model=self._model,
                detail=detail or {},
            )
        )
