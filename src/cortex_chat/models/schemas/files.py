"""
File-related API schemas.

Provides request/response models for file upload, listing, and content
retrieval with OpenAPI documentation.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from cortex_chat.models.files import FileRecord, UploadBatchResult


class StoredFileInfo(BaseModel):
    """Metadata of a stored file (no content)."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "file_id": "6f1c2a8e-1d7b-4d7e-9a55-0c0c5f1e2b11",
                "conversation_id": "conv_42",
                "session_id": "sess_7",
                "filename": "report.pdf",
                "mime_type": "application/pdf",
                "size_bytes": 245760,
                "uploaded_at": "2025-01-15T10:30:00Z",
                "is_chunked": True,
                "chunk_count": 2,
            }
        }
    )

    file_id: str = Field(..., description="Opaque file identifier")
    conversation_id: str | None = Field(default=None, description="Owning conversation, if any")
    session_id: str = Field(..., description="Uploading session")
    filename: str = Field(..., description="Original filename")
    mime_type: str = Field(..., description="MIME type recorded at upload")
    size_bytes: int = Field(..., ge=0, description="Raw size in bytes")
    uploaded_at: datetime = Field(..., description="Upload timestamp")
    is_chunked: bool = Field(default=False, description="Content is split across chunk rows")
    chunk_count: int = Field(default=0, ge=0, description="Number of chunk rows (0 when inline)")

    @classmethod
    def from_record(cls, record: FileRecord) -> StoredFileInfo:
        return cls(
            file_id=record.file_id,
            conversation_id=record.conversation_id,
            session_id=record.session_id,
            filename=record.filename,
            mime_type=record.mime_type,
            size_bytes=record.size_bytes,
            uploaded_at=record.uploaded_at,
            is_chunked=record.is_chunked,
            chunk_count=record.chunk_count,
        )


class UploadError(BaseModel):
    """A file of the batch that was not stored."""

    filename: str = Field(..., description="Filename as uploaded")
    error: str = Field(..., description="Why the file was rejected")
    code: str | None = Field(default=None, description="Application error code")


class FileUploadResponse(BaseModel):
    """Response from a multi-file upload."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "uploaded": [
                    {
                        "file_id": "6f1c2a8e-1d7b-4d7e-9a55-0c0c5f1e2b11",
                        "session_id": "sess_7",
                        "filename": "notes.txt",
                        "mime_type": "text/plain",
                        "size_bytes": 1024,
                        "uploaded_at": "2025-01-15T10:30:00Z",
                        "is_chunked": False,
                        "chunk_count": 0,
                    }
                ],
                "errors": [
                    {
                        "filename": "huge.bin",
                        "error": "File 'huge.bin' is 12582912 bytes; the limit is 10485760 bytes",
                        "code": "FILE_5002",
                    }
                ],
            }
        }
    )

    uploaded: list[StoredFileInfo] = Field(default_factory=list, description="Files stored")
    errors: list[UploadError] = Field(default_factory=list, description="Files rejected")

    @classmethod
    def from_result(cls, result: UploadBatchResult) -> FileUploadResponse:
        return cls(
            uploaded=[StoredFileInfo.from_record(r) for r in result.uploaded],
            errors=[UploadError(filename=e.filename, error=e.error, code=e.code) for e in result.errors],
        )


class FileListResponse(BaseModel):
    """Files of a conversation, newest first."""

    files: list[StoredFileInfo] = Field(..., description="File metadata")
    count: int = Field(default=0, ge=0, description="Total number of files")


class FileContentResponse(BaseModel):
    """File content decoded as UTF-8 text."""

    model_config = ConfigDict(json_schema_extra={"example": {"content": "quarterly,revenue\nQ1,100\n"}})

    content: str = Field(..., description="Decoded file content")


class FileDeleteResponse(BaseModel):
    success: bool = Field(default=True)
    file_id: str = Field(..., description="Deleted file identifier")
