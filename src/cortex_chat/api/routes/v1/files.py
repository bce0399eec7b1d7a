"""
File endpoints (v1).

Uploads are stored through the blob store (inline or chunked); listing
returns metadata only.
"""

from __future__ import annotations

from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, File as FastAPIFile, Form, Path, Query, UploadFile
from fastapi.responses import Response

from cortex_chat.api.dependencies import Blobs
from cortex_chat.api.middleware.exception_handlers import (
    FileNotFoundError,
    FileTooLargeError,
    UploadBatchFailed,
    ValidationException,
)
from cortex_chat.api.middleware.request_context import update_request_context
from cortex_chat.core.constants import DEFAULT_MIME_TYPE
from cortex_chat.models.error_models import ErrorCode, ErrorDetail
from cortex_chat.models.files import FileMetadata, UploadFailure, UploadItem
from cortex_chat.models.schemas.files import (
    FileContentResponse,
    FileDeleteResponse,
    FileListResponse,
    FileUploadResponse,
    StoredFileInfo,
)

router = APIRouter()

FileIdPath = Annotated[
    str,
    Path(
        ...,
        description="File identifier returned at upload",
        examples=["6f1c2a8e-1d7b-4d7e-9a55-0c0c5f1e2b11"],
    ),
]

# Browsers serialise missing ids as these strings in form data
_ABSENT_IDS = {"", "null", "undefined"}


def _optional_id(value: str | None) -> str | None:
    if value is None or value.strip() in _ABSENT_IDS:
        return None
    return value.strip()


@router.post(
    "/files",
    response_model=FileUploadResponse,
    status_code=201,
    summary="Upload files",
    description=(
        "Upload one or more files. Each file is stored independently; files that fail "
        "(for example, over the size limit) are listed under `errors`."
    ),
    responses={
        400: {"description": "sessionId missing or no files sent"},
        413: {"description": "Every file was over the size limit"},
        500: {"description": "No file could be stored"},
    },
)
async def upload_files(
    blobs: Blobs,
    files: Annotated[list[UploadFile] | None, FastAPIFile(description="Files to upload")] = None,
    session_id: Annotated[str | None, Form(alias="sessionId")] = None,
    conversation_id: Annotated[str | None, Form(alias="conversationId")] = None,
) -> FileUploadResponse:
    session = _optional_id(session_id)
    if session is None:
        raise ValidationException("sessionId is required", code=ErrorCode.VALIDATION_BAD_REQUEST)
    if not files:
        raise ValidationException("No files uploaded", code=ErrorCode.VALIDATION_BAD_REQUEST)

    conversation = _optional_id(conversation_id)
    items: list[UploadItem] = []
    rejected: list[UploadFailure] = []
    for upload in files:
        filename = upload.filename or "upload"
        # Multipart parsing records the size, so oversize files are never read
        if upload.size is not None:
            try:
                blobs.check_size(filename, upload.size)
            except FileTooLargeError as e:
                rejected.append(UploadFailure(filename=filename, error=e.message, code=e.code.value))
                continue
        items.append(
            UploadItem(
                metadata=FileMetadata(
                    filename=filename,
                    session_id=session,
                    conversation_id=conversation,
                    mime_type=upload.content_type or DEFAULT_MIME_TYPE,
                ),
                content=await upload.read(),
            )
        )

    result = await blobs.put_batch(items)
    result.errors.extend(rejected)
    if not result.any_uploaded:
        raise UploadBatchFailed([ErrorDetail(field=e.filename, message=e.error, code=e.code) for e in result.errors])

    return FileUploadResponse.from_result(result)


@router.get(
    "/files",
    response_model=FileListResponse,
    summary="List conversation files",
    description="Metadata of the files attached to a conversation, newest first.",
)
async def list_files(
    blobs: Blobs,
    conversation_id: Annotated[str | None, Query(alias="conversationId")] = None,
) -> FileListResponse:
    conversation = _optional_id(conversation_id)
    if conversation is None:
        raise ValidationException("conversationId is required", code=ErrorCode.VALIDATION_BAD_REQUEST)

    records = await blobs.list_by_conversation(conversation)
    return FileListResponse(files=[StoredFileInfo.from_record(r) for r in records], count=len(records))


@router.get(
    "/files/{file_id}/content",
    response_model=FileContentResponse,
    summary="Get file content as text",
    responses={404: {"description": "Unknown file"}, 500: {"description": "Stored chunks are incomplete"}},
)
async def get_file_content(file_id: FileIdPath, blobs: Blobs) -> FileContentResponse:
    update_request_context(file_id=file_id)
    data = await blobs.get(file_id)
    return FileContentResponse(content=data.decode("utf-8", errors="replace"))


@router.get(
    "/files/{file_id}/download",
    summary="Download file",
    response_class=Response,
    responses={200: {"content": {"application/octet-stream": {}}}, 404: {"description": "Unknown file"}},
)
async def download_file(file_id: FileIdPath, blobs: Blobs) -> Response:
    update_request_context(file_id=file_id)
    record, data = await blobs.get_with_record(file_id)
    return Response(
        content=data,
        media_type=record.mime_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(record.filename)}"},
    )


@router.delete(
    "/files/{file_id}",
    response_model=FileDeleteResponse,
    summary="Delete file",
    responses={404: {"description": "Unknown file"}},
)
async def delete_file(file_id: FileIdPath, blobs: Blobs) -> FileDeleteResponse:
    update_request_context(file_id=file_id)
    if not await blobs.delete(file_id):
        raise FileNotFoundError(file_id)
    return FileDeleteResponse(file_id=file_id)
