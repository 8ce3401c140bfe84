"""Single-value completion channel.

A query's answer travels from the coordinator task back to the waiting
request handler through one of these: written once, read once.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Generic, TypeVar

from contracts.errors import ChannelError

T = TypeVar("T")


class ChannelState(str, Enum):
    OPEN = "open"          # nothing delivered yet
    FILLED = "filled"      # value or error delivered, not yet received
    CONSUMED = "consumed"  # receiver has taken the result
    CLOSED = "closed"      # cancelled before delivery


class OneShot(Generic[T]):
    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._consumed = False

    @property
    def state(self) -> ChannelState:
        if self._future.cancelled():
            return ChannelState.CLOSED
        if self._consumed:
            return ChannelState.CONSUMED
        if self._future.done():
            return ChannelState.FILLED
        return ChannelState.OPEN

    @property
    def done(self) -> bool:
        """True once a result was delivered or the channel was cancelled."""
        return self._future.done()

    def send(self, value: T) -> None:
        if self._future.cancelled():
            raise ChannelError("Channel was cancelled")
        if self._future.done():
            raise ChannelError("Channel already holds a result")
        self._future.set_result(value)

    def fail(self, exc: BaseException) -> None:
        if self._future.cancelled():
            raise ChannelError("Channel was cancelled")
        if self._future.done():
            raise ChannelError("Channel already holds a result")
        self._future.set_exception(exc)

    def cancel(self) -> bool:
        return self._future.cancel()

    def add_done_callback(self, fn: Callable[["OneShot[T]"], None]) -> None:
        self._future.add_done_callback(lambda _: fn(self))

    async def receive(self) -> T:
        """Wait for the single result. A second call raises ChannelError."""
        if self._consumed:
            raise ChannelError("Channel result already received")
        try:
            # cancelling the receiver cancels the future, closing the channel
            return await self._future
        finally:
            if self._future.done() and not self._future.cancelled():
                self._consumed = True
