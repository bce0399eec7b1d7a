"""
Thread endpoints (v1).

Thin proxy over the Cortex thread API; answered locally in mock mode.
Upstream failures surface as 502 responses.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Path, Query

from cortex_chat.api.dependencies import Threads
from cortex_chat.api.middleware.exception_handlers import ValidationException
from cortex_chat.api.middleware.request_context import update_request_context
from cortex_chat.core.constants import THREAD_DESCRIBE_PAGE_SIZE
from cortex_chat.models.error_models import ErrorCode
from cortex_chat.models.schemas.threads import (
    ThreadCreateRequest,
    ThreadCreateResponse,
    ThreadUpdateRequest,
)

router = APIRouter()

ThreadIdPath = Annotated[
    str,
    Path(
        ...,
        description="Upstream thread identifier",
        examples=["1234"],
    ),
]


@router.get(
    "/threads",
    summary="List threads",
    description="List threads created by an origin application.",
)
async def list_threads(
    threads: Threads,
    origin_application: Annotated[str | None, Query(description="Origin tag filter")] = None,
) -> Any:
    return await threads.list_threads(origin_application)


@router.post(
    "/threads",
    response_model=ThreadCreateResponse,
    summary="Create thread",
    responses={
        200: {"content": {"application/json": {"example": {"thread_id": "mock_thread_1736936400000_k3j9x2ab"}}}},
        502: {"description": "Cortex rejected or could not be reached"},
    },
)
async def create_thread(
    threads: Threads,
    body: Annotated[ThreadCreateRequest | None, Body()] = None,
) -> ThreadCreateResponse:
    body = body or ThreadCreateRequest()
    thread_id = await threads.create_thread(body.origin_application, body.agent_id)
    return ThreadCreateResponse(thread_id=str(thread_id))


@router.get(
    "/threads/{thread_id}",
    summary="Describe thread",
    description="Thread metadata and a page of messages.",
)
async def describe_thread(
    thread_id: ThreadIdPath,
    threads: Threads,
    page_size: Annotated[int, Query(ge=1, le=100)] = THREAD_DESCRIBE_PAGE_SIZE,
    last_message_id: Annotated[int | None, Query()] = None,
) -> Any:
    update_request_context(thread_id=thread_id)
    return await threads.describe_thread(thread_id, page_size=page_size, last_message_id=last_message_id)


@router.post(
    "/threads/{thread_id}",
    summary="Rename thread",
    responses={400: {"description": "thread_name missing"}},
)
async def update_thread(thread_id: ThreadIdPath, threads: Threads, body: ThreadUpdateRequest) -> Any:
    if not body.thread_name:
        raise ValidationException("thread_name is required", code=ErrorCode.VALIDATION_BAD_REQUEST)
    return await threads.update_thread(thread_id, body.thread_name)


@router.delete(
    "/threads/{thread_id}",
    summary="Delete thread",
)
async def delete_thread(thread_id: ThreadIdPath, threads: Threads) -> Any:
    return await threads.delete_thread(thread_id)
