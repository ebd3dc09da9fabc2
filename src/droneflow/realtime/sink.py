"""Subscriber sinks — the writable end of one SSE connection.

Learn: A sink is what the registry owns for each subscriber. Writes are
non-blocking: QueueSink.write() is a put_nowait() into a bounded
asyncio.Queue that the StreamingResponse generator drains. A full queue
means the subscriber stopped reading, which we treat exactly like a dead
socket: the write raises and the caller drops the connection.
"""

import asyncio
from typing import AsyncIterator, Optional, Protocol


class SinkClosedError(Exception):
    """Raised when writing to a sink that is closed or backed up."""


class Sink(Protocol):
    """Anything the registry can write frames to."""

    @property
    def closed(self) -> bool: ...

    def write(self, frame: str) -> None: ...

    def close(self) -> None: ...


class QueueSink:
    """Bounded-queue sink consumed by a streaming HTTP response."""

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, frame: str) -> None:
        if self._closed:
            raise SinkClosedError("sink is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise SinkClosedError("subscriber is not reading (queue full)") from None

    def close(self) -> None:
        """Mark closed and wake the reader. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            # Stalled reader: give up the oldest frame so the sentinel fits
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        """Yield queued frames until the sink is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame
