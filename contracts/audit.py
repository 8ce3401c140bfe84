"""Audit logging contracts.

Append-only JSONL — one record per event. This is the service's
observability channel: background task failures land here instead
of killing the process.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditEvent(str, Enum):
    SERVER_START = "server.start"
    SERVER_STOP = "server.stop"
    EVENT_STORED = "event.stored"
    EVENT_RETRY = "event.retry"
    EVENT_DEAD_LETTER = "event.dead_letter"
    QUERY_START = "query.start"
    QUERY_END = "query.end"
    QUERY_FAILED = "query.failed"
    MODEL_PRELOADED = "model.preloaded"
    MODEL_PRELOAD_FAILED = "model.preload_failed"
    WORKER_RESTART = "worker.restart"


class AuditEntry(BaseModel):
    """A single audit log record."""

    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    request_id: str = ""
    event: AuditEvent
    app: str = ""
    model: str = ""
    detail: dict[str, Any] = {}  # document id, state, error, etc.


class AuditLogger(ABC):
    """Interface for the append-only audit logger."""

    @abstractmethod
    def log(self, entry: AuditEntry) -> None:
        """Append an entry to the audit log."""
        ...

    @abstractmethod
    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        """Return all entries for a given request_id."""
        ...

    @abstractmethod
    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        """Return recent entries of a given event type."""
        ...

    @abstractmethod
    def tail(self, n: int = 20) -> list[AuditEntry]:
        """Return the last N entries."""
        ...
