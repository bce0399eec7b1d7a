"""
Stream adapters: the push sink the relay writes events into.

The adapter owns wire framing (one ``data: <json>\\n\\n`` frame per event)
and closes its transport exactly once. Emits after close, and emits after a
terminal event, are ignored.
"""

from __future__ import annotations

import asyncio

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from cortex_chat.models.events import DoneEvent, ErrorEvent, TextEvent, is_terminal
from cortex_chat.utils.logger import logger

Event = TextEvent | DoneEvent | ErrorEvent


def encode_frame(event: Event) -> bytes:
    """Serialize one event as a Server-Sent Events frame."""
    return b"data: " + event.model_dump_json().encode("utf-8") + b"\n\n"


class StreamAdapter(ABC):
    """One adapter per response; one transport per adapter."""

    def __init__(self) -> None:
        self._closed = False
        self._terminated = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        """True once a ``done`` or ``error`` event was written."""
        return self._terminated

    def emit(self, event: Event) -> None:
        if self._closed:
            logger.debug(f"Dropping '{event.type}' event emitted after close")
            return
        if self._terminated:
            logger.debug(f"Dropping '{event.type}' event emitted after the terminal event")
            return
        self._write(encode_frame(event))
        if is_terminal(event):
            self._terminated = True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._finalize()

    @abstractmethod
    def _write(self, frame: bytes) -> None:
        """Hand one encoded frame to the transport."""

    @abstractmethod
    def _finalize(self) -> None:
        """Finish the transport. Called once."""


class QueueStreamAdapter(StreamAdapter):
    """Feeds a ``StreamingResponse`` body through an unbounded asyncio queue."""

    def __init__(self) -> None:
        super().__init__()
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue()

    def _write(self, frame: bytes) -> None:
        self._queue.put_nowait(frame)

    def _finalize(self) -> None:
        self._queue.put_nowait(None)

    async def body(self) -> AsyncIterator[bytes]:
        """Yield frames until the adapter is closed."""
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


class MemoryStreamAdapter(StreamAdapter):
    """Collects frames in memory."""

    def __init__(self) -> None:
        super().__init__()
        self.frames: list[bytes] = []
        self.events: list[Event] = []
        self.finalize_calls = 0

    def emit(self, event: Event) -> None:
        accepted = not (self.closed or self.terminated)
        super().emit(event)
        if accepted:
            self.events.append(event)

    def _write(self, frame: bytes) -> None:
        self.frames.append(frame)

    def _finalize(self) -> None:
        self.finalize_calls += 1

    @property
    def body(self) -> bytes:
        return b"".join(self.frames)


__all__ = [
    "Event",
    "MemoryStreamAdapter",
    "QueueStreamAdapter",
    "StreamAdapter",
    "encode_frame",
]
