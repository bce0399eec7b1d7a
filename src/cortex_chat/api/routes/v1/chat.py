"""
Chat endpoint (v1).

Relays one user turn to the configured Cortex agent (or the mock reply)
and streams the result as Server-Sent Events.
"""

from __future__ import annotations

import asyncio

from collections.abc import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from cortex_chat.api.dependencies import Relay
from cortex_chat.api.middleware.exception_handlers import ValidationException
from cortex_chat.api.services.agent_relay import AgentRelay, RelayRequest
from cortex_chat.api.services.stream_adapter import QueueStreamAdapter
from cortex_chat.core.constants import SSE_HEADERS
from cortex_chat.models.error_models import ErrorCode

router = APIRouter()


async def _relay_body(relay: AgentRelay, relay_request: RelayRequest) -> AsyncIterator[bytes]:
    # The relay starts with the body, so a response that never streams never dispatches
    adapter = QueueStreamAdapter()
    task = asyncio.create_task(relay.run(relay_request, adapter))
    try:
        async for frame in adapter.body():
            yield frame
    finally:
        # Client went away (or the body finished): stop forwarding and release the upstream call
        if not task.done():
            task.cancel()


@router.post(
    "/chat",
    summary="Chat with an agent",
    description=(
        "Send exactly one user message and receive the reply as `text/event-stream`. "
        "Each frame is `data: <json>` carrying a `text`, `done` or `error` event."
    ),
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "Event stream",
            "content": {
                "text/event-stream": {
                    "example": 'data: {"type":"text","text":"Hello"}\n\ndata: {"type":"done"}\n\n',
                }
            },
        },
        400: {"description": "Malformed message list, stream flag or parent_message_id"},
    },
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                "application/json": {
                    "example": {
                        "messages": [{"role": "user", "content": [{"type": "text", "text": "Top customers?"}]}],
                        "stream": True,
                        "thread_id": 1234,
                        "parent_message_id": 0,
                        "agent_id": "1",
                    }
                }
            },
        }
    },
)
async def chat(request: Request, relay: Relay) -> StreamingResponse:
    """Validate synchronously, then stream the relayed turn."""
    try:
        payload = await request.json()
    except ValueError as e:
        raise ValidationException("Request body must be valid JSON", code=ErrorCode.VALIDATION_BAD_REQUEST) from e

    relay_request = relay.validate(payload)

    return StreamingResponse(
        _relay_body(relay, relay_request),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
