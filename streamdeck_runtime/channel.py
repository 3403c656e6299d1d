"""Bounded FIFO channel with an explicit end-of-stream state."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Awaitable, Generic, TypeVar

from .errors import ChannelClosed

T = TypeVar("T")


class EventChannel(Generic[T]):
    """An ``asyncio.Queue`` that can be closed.

    After :meth:`close`, consumers still receive every item queued before
    the close and then get :class:`ChannelClosed`; producers get
    :class:`ChannelClosed` immediately, including those blocked waiting for
    capacity.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    def qsize(self) -> int:
        return self._queue.qsize()

    def empty(self) -> bool:
        return self._queue.empty()

    def full(self) -> bool:
        return self._queue.full()

    async def _race(self, op: Awaitable[Any]) -> tuple[bool, Any]:
        """Await ``op`` unless the channel closes first.

        Returns ``(True, result)`` when ``op`` finished, ``(False, None)``
        when the close won.
        """
        task = asyncio.ensure_future(op)
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            await asyncio.wait({task, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closer.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        if task.cancelled():
            return False, None
        return True, task.result()

    async def put(self, item: T) -> None:
        """Put ``item``, waiting for capacity; raise once the channel is closed."""
        if self.closed:
            raise ChannelClosed("channel is closed")
        try:
            self._queue.put_nowait(item)
            return
        except asyncio.QueueFull:
            pass
        done, _ = await self._race(self._queue.put(item))
        if not done:
            raise ChannelClosed("channel is closed")

    def put_nowait(self, item: T) -> None:
        """Put ``item`` or raise ``asyncio.QueueFull`` / :class:`ChannelClosed`."""
        if self.closed:
            raise ChannelClosed("channel is closed")
        self._queue.put_nowait(item)

    async def get(self) -> T:
        """Return the next item or raise :class:`ChannelClosed` at end of stream."""
        with contextlib.suppress(asyncio.QueueEmpty):
            return self._queue.get_nowait()
        if self.closed:
            raise ChannelClosed("channel is closed")
        done, item = await self._race(self._queue.get())
        if done:
            return item
        # closed while waiting; anything queued meanwhile is still delivered
        with contextlib.suppress(asyncio.QueueEmpty):
            return self._queue.get_nowait()
        raise ChannelClosed("channel is closed")

    def get_nowait(self) -> T:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            if self.closed:
                raise ChannelClosed("channel is closed") from None
            raise

    async def wait_closed(self) -> None:
        await self._closed.wait()

    def close(self) -> None:
        """Mark the channel closed; idempotent."""
        self._closed.set()

    def discard(self) -> int:
        """Close the channel and drop queued items, returning how many were dropped."""
        self.close()
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            dropped += 1
        return dropped
