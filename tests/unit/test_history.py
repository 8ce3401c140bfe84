"""Unit tests for the conversation history."""

from __future__ import annotations

import pytest

from contracts.api import Role
from foxrag.history import ConversationHistory


class TestConversationHistory:
    def test_starts_with_system_message(self) -> None:
        history = ConversationHistory("you are an analyst")
        snap = history.snapshot()
        assert len(history) == 1
        assert snap[0].role == Role.SYSTEM
        assert snap[0].content == "you are an analyst"

    def test_append_keeps_order(self) -> None:
        history = ConversationHistory("sys")
        history.append(Role.USER, "q1")
        history.append(Role.ASSISTANT, "a1")
        assert [m.content for m in history.snapshot()] == ["sys", "q1", "a1"]

    def test_second_system_message_rejected(self) -> None:
        history = ConversationHistory("sys")
        with pytest.raises(ValueError):
            history.append(Role.SYSTEM, "again")

    def test_snapshot_is_a_copy(self) -> None:
        history = ConversationHistory("sys")
        snap = history.snapshot()
        snap.clear()
        assert len(history) == 1

    @pytest.mark.asyncio
    async def test_transaction_commits_on_success(self) -> None:
        history = ConversationHistory("sys")
        async with history.transaction() as turn:
            turn.append(Role.USER, "question")
            assert [m.content for m in turn.snapshot()] == ["sys", "question"]
            assert len(history) == 1
            assert history.locked
            turn.append(Role.ASSISTANT, "answer")
        assert not history.locked
        assert [m.content for m in history.snapshot()] == ["sys", "question", "answer"]

    @pytest.mark.asyncio
    async def test_transaction_discards_on_error(self) -> None:
        history = ConversationHistory("sys")
        with pytest.raises(RuntimeError):
            async with history.transaction() as turn:
                turn.append(Role.USER, "question")
                raise RuntimeError("model down")
        assert len(history) == 1
        assert not history.locked

    @pytest.mark.asyncio
    async def test_turn_rejects_system_message(self) -> None:
        history = ConversationHistory("sys")
        with pytest.raises(ValueError):
            async with history.transaction() as turn:
                turn.append(Role.SYSTEM, "sneaky")
        assert len(history) == 1
