"""Supervised background tasks.

A background coroutine that crashes is restarted with exponential
backoff and the crash is written to the audit log, instead of taking
the whole process down.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from contracts.audit import AuditEntry, AuditEvent, AuditLogger


async def supervise(
    name: str,
    factory: Callable[[], Awaitable[None]],
    logger: AuditLogger | None = None,
    *,
    backoff_seconds: float = 0.5,
    max_backoff_seconds: float = 30.0,
    max_restarts: int | None = None,
) -> None:
    """Run ``factory()`` until it returns normally, restarting it on errors.

    Cancellation is never treated as a crash. When *max_restarts* is
    exhausted the last error is re-raised.
    """
    restarts = 0
    delay = backoff_seconds
    while True:
        try:
            await factory()
            return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if max_restarts is not None and restarts >= max_restarts:
                raise
            restarts += 1
            if logger is not None:
                logger.log(
                    AuditEntry(
                        event=AuditEvent.WORKER_RESTART,
                        detail={
                            "worker": name,
                            "error": f"{type(exc).__name__}: {exc}",
                            "restarts": restarts,
                        },
                    )
                )
            await asyncio.sleep(delay)
            delay = min(delay * 2, max_backoff_seconds)
