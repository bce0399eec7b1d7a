"""
Client-facing stream events.

A relayed turn produces zero or more ``text`` events followed by exactly one
terminal event (``done`` or ``error``). Each event is serialized as one
Server-Sent Events frame: ``data: <json>\\n\\n``.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class TextEvent(BaseModel):
    """A fragment of the agent's reply, forwarded in arrival order."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class DoneEvent(BaseModel):
    """Natural completion of the stream."""

    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"


class ErrorEvent(BaseModel):
    """Failure after the stream opened."""

    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    message: str


StreamEvent = Annotated[TextEvent | DoneEvent | ErrorEvent, Field(discriminator="type")]

stream_event_adapter: TypeAdapter[TextEvent | DoneEvent | ErrorEvent] = TypeAdapter(StreamEvent)


def is_terminal(event: TextEvent | DoneEvent | ErrorEvent) -> bool:
    return event.type != "text"


__all__ = [
    "DoneEvent",
    "ErrorEvent",
    "StreamEvent",
    "TextEvent",
    "is_terminal",
    "stream_event_adapter",
]
