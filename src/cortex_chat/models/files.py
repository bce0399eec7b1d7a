"""
Stored file records.

A record is either inline (content kept in the metadata row, ``chunk_count``
zero) or chunked (content split across ``chunk_count`` chunk rows). Never
both and never neither.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from cortex_chat.core.constants import DEFAULT_MIME_TYPE


@dataclass(frozen=True, slots=True)
class FileMetadata:
    """Caller-supplied description of an upload."""

    filename: str
    session_id: str
    conversation_id: str | None = None
    mime_type: str = DEFAULT_MIME_TYPE


@dataclass(frozen=True, slots=True)
class FileRecord:
    """Metadata row of a stored file (never carries content)."""

    file_id: str
    session_id: str
    filename: str
    mime_type: str
    size_bytes: int
    conversation_id: str | None = None
    is_chunked: bool = False
    chunk_count: int = 0
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.is_chunked and self.chunk_count < 1:
            raise ValueError("chunked records need at least one chunk")
        if not self.is_chunked and self.chunk_count != 0:
            raise ValueError("inline records have a chunk count of 0")


@dataclass(slots=True)
class UploadItem:
    """One file of an upload batch."""

    metadata: FileMetadata
    content: bytes


@dataclass(slots=True)
class UploadFailure:
    filename: str
    error: str
    code: str | None = None


@dataclass(slots=True)
class UploadBatchResult:
    """Outcome of a multi-file upload; failures are isolated per file."""

    uploaded: list[FileRecord] = field(default_factory=list)
    errors: list[UploadFailure] = field(default_factory=list)

    @property
    def any_uploaded(self) -> bool:
        return bool(self.uploaded)


__all__ = [
    "FileMetadata",
    "FileRecord",
    "UploadBatchResult",
    "UploadFailure",
    "UploadItem",
]
