"""Read side of the audit log.

``select`` is the only filter over the JSONL file; the logger's query
methods and the CLI ``logs`` command both go through it.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from contracts.audit import AuditEntry, AuditEvent


def read_entries(log_path: str | Path) -> Iterator[AuditEntry]:
    """Yield entries in file order.

    A line that does not parse (a write cut short by a crash) is skipped
    so one torn record cannot hide the rest of the log.
    """
    p = Path(log_path)
    if not p.exists():
        return
    with p.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                yield AuditEntry(**json.loads(line))
            except (json.JSONDecodeError, ValidationError):
                continue


def select(
    log_path: str | Path,
    *,
    request_id: str | None = None,
    event: AuditEvent | None = None,
    last: int | None = None,
) -> list[AuditEntry]:
    """Entries matching every given filter, oldest first.

    *last* keeps only the most recent N matches.
    """
    matches = [
        e
        for e in read_entries(log_path)
        if (request_id is None or e.request_id == request_id)
        and (event is None or e.event == event)
    ]
    if last is not None:
        matches = matches[-last:] if last > 0 else []
    return matches
