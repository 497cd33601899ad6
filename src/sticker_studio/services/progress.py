"""Progress channel shared between the orchestrator and its caller."""

import asyncio
from collections.abc import AsyncIterator

from sticker_studio.domain.batch import ProgressEvent


class ProgressChannel:
    """Event channel supporting both polling and streaming consumers.

    The orchestrator publishes events; callers either read ``latest`` or drain
    ``events()`` until the channel is closed.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[ProgressEvent | None] = asyncio.Queue()
        self._history: list[ProgressEvent] = []
        self._closed = False

    @property
    def latest(self) -> ProgressEvent | None:
        """Return the most recent event, if any."""
        return self._history[-1] if self._history else None

    @property
    def history(self) -> list[ProgressEvent]:
        """Return every event published so far."""
        return list(self._history)

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ProgressEvent) -> None:
        """Record an event and wake streaming consumers."""
        if self._closed:
            raise RuntimeError("Progress channel is closed")
        self._history.append(event)
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Signal the end of the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events as they are published until the channel closes."""
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item
