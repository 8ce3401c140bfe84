"""Conversation history shared by every query.

History is append-only. A query stages its user and assistant turns in
a transaction; they become visible together when the transaction
commits, and vanish if the query fails or is cancelled.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from contracts.api import Message, Role


class ConversationHistory:
    """Ordered, append-only sequence of role-tagged messages."""

    def __init__(self, system_prompt: str) -> None:
        self._messages: list[Message] = [Message(role=Role.SYSTEM, content=system_prompt)]
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._messages)

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    def append(self, role: Role, content: str) -> None:
        if role == Role.SYSTEM:
            raise ValueError("History already has its system message")
        self._messages.append(Message(role=role, content=content))

    def snapshot(self) -> list[Message]:
        return list(self._messages)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Turn]:
        """Hold the history lock and stage appends until the block exits cleanly."""
        async with self._lock:
            turn = Turn(self)
            yield turn
            for msg in turn.staged:
                self.append(msg.role, msg.content)


class Turn:
    """Staged view of the history inside a transaction."""

    def __init__(self, history: ConversationHistory) -> None:
        self._history = history
        self.staged: list[Message] = []

    def append(self, role: Role, content: str) -> None:
        if role == Role.SYSTEM:
            raise ValueError("History already has its system message")
        self.staged.append(Message(role=role, content=content))

    def snapshot(self) -> list[Message]:
        return self._history.snapshot() + self.staged
