"""
Single-use async channel.

A one-producer, one-consumer FIFO used to hand the outgoing user message
to the native runtime, which consumes its prompt as an async iterable.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

T = TypeVar("T")


class ChannelError(Exception):
    """Channel used outside its single-producer, single-consumer contract."""
    pass


class ChannelClosed(Exception):
    """No more values: the channel was closed and drained."""
    pass


class SingleUseChannel(Generic[T]):
    """
    Unbounded FIFO with an explicit close.

    - put() any number of times until close()
    - receive() returns the next value immediately if one is queued, else
      waits for put() or close(); after close() and drain it raises
      ChannelClosed
    - the channel can be iterated exactly once
    - a consumer that stops early leaves the channel closed, and later
      put()/close() calls notify nobody
    """

    def __init__(self) -> None:
        self._queue: deque[T] = deque()
        self._waiter: asyncio.Future[None] | None = None
        self._closed = False
        self._started = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, value: T) -> None:
        if self._closed:
            raise ChannelError("Cannot put into a closed channel")
        self._queue.append(value)
        self._wake()

    def close(self) -> None:
        """Mark the channel finished. Queued values are still delivered."""
        self._closed = True
        self._wake()

    def _wake(self) -> None:
        waiter, self._waiter = self._waiter, None
        if waiter is not None and not waiter.done():
            waiter.set_result(None)

    async def receive(self) -> T:
        """
        Pull the next value.

        Raises:
            ChannelClosed: If the channel is closed and drained
            ChannelError: If another receive() is already waiting
        """
        while True:
            if self._queue:
                return self._queue.popleft()
            if self._closed:
                raise ChannelClosed()
            if self._waiter is not None:
                raise ChannelError("Channel supports a single consumer")
            self._waiter = asyncio.get_running_loop().create_future()
            try:
                await self._waiter
            finally:
                self._waiter = None

    def __aiter__(self) -> AsyncIterator[T]:
        if self._started:
            raise ChannelError("Channel can only be iterated once")
        self._started = True
        return self._drain()

    async def _drain(self) -> AsyncIterator[T]:
        try:
            while True:
                try:
                    value = await self.receive()
                except ChannelClosed:
                    return
                yield value
        finally:
            # Early exit: finish without waking anyone
            self._closed = True
            self._queue.clear()
            self._waiter = None

    @classmethod
    def of(cls, *values: T) -> "SingleUseChannel[T]":
        """A channel preloaded with values and already closed."""
        channel: SingleUseChannel[T] = cls()
        for value in values:
            channel.put(value)
        channel.close()
        return channel


__all__ = ["ChannelClosed", "ChannelError", "SingleUseChannel"]
