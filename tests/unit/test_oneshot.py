"""Unit tests for the one-shot answer channel."""

from __future__ import annotations

import asyncio

import pytest

from contracts.errors import ChannelError, ModelError
from foxrag.oneshot import ChannelState, OneShot


class TestOneShot:
    @pytest.mark.asyncio
    async def test_send_then_receive(self) -> None:
        channel: OneShot[str] = OneShot()
        assert channel.state == ChannelState.OPEN
        channel.send("answer")
        assert channel.state == ChannelState.FILLED
        assert await channel.receive() == "answer"
        assert channel.state == ChannelState.CONSUMED

    @pytest.mark.asyncio
    async def test_receiver_waits_for_sender(self) -> None:
        channel: OneShot[str] = OneShot()
        receiver = asyncio.create_task(channel.receive())
        await asyncio.sleep(0)
        assert not receiver.done()
        channel.send("late answer")
        assert await receiver == "late answer"

    @pytest.mark.asyncio
    async def test_second_send_rejected(self) -> None:
        channel: OneShot[str] = OneShot()
        channel.send("first")
        with pytest.raises(ChannelError):
            channel.send("second")
        with pytest.raises(ChannelError):
            channel.fail(ModelError("late"))

    @pytest.mark.asyncio
    async def test_second_receive_rejected(self) -> None:
        channel: OneShot[str] = OneShot()
        channel.send("once")
        await channel.receive()
        with pytest.raises(ChannelError):
            await channel.receive()

    @pytest.mark.asyncio
    async def test_failure_delivered_once(self) -> None:
        channel: OneShot[str] = OneShot()
        channel.fail(ModelError("backend down"))
        with pytest.raises(ModelError):
            await channel.receive()
        assert channel.state == ChannelState.CONSUMED
        with pytest.raises(ChannelError):
            await channel.receive()

    @pytest.mark.asyncio
    async def test_cancelled_receiver_closes_channel(self) -> None:
        channel: OneShot[str] = OneShot()
        closed: list[ChannelState] = []
        channel.add_done_callback(lambda ch: closed.append(ch.state))

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(channel.receive(), 0.01)
        await asyncio.sleep(0)

        assert channel.state == ChannelState.CLOSED
        assert closed == [ChannelState.CLOSED]
        with pytest.raises(ChannelError, match="cancelled"):
            channel.send("too late")
