"""Append-only JSONL audit logger."""

from __future__ import annotations

import threading
from pathlib import Path

from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from foxrag.audit.query import select


class JsonlAuditLogger(AuditLogger):
    """Thread-safe, append-only JSONL audit logger."""

    def __init__(self, path: str | Path, app: str = "") -> None:
        self._path = Path(path)
        self._app = app
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def log(self, entry: AuditEntry) -> None:
        if not entry.app and self._app:
            entry = entry.model_copy(update={"app": self._app})
        line = entry.model_dump_json() + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        return select(self._path, request_id=request_id)

    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        return select(self._path, event=event, last=limit)

    def tail(self, n: int = 20) -> list[AuditEntry]:
        return select(self._path, last=n)
