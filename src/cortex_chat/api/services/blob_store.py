"""
Blob store for uploaded files.

Files whose base64 text fits in one record are stored inline; larger files
are split into chunk rows. Writes are two-phase: every chunk is staged in
memory first, then the metadata row and a bounded-retry bulk chunk insert
are written. If any write fails, rows already written for that file are
deleted (chunks first) before the failure is reported, so a failed upload
never leaves a listed-but-unreadable file behind.

Reads always go to storage; nothing is cached.
"""

from __future__ import annotations

import time
import uuid

from collections.abc import Iterable

from cortex_chat.api.middleware.exception_handlers import (
    AppException,
    BlobWriteError,
    FileNotFoundError,
    FileTooLargeError,
    StorageIntegrityError,
)
from cortex_chat.api.services.file_repository import FileRepository
from cortex_chat.core.constants import CHUNK_WRITE_ATTEMPTS, MAX_CHUNK_SIZE, MAX_UPLOAD_SIZE
from cortex_chat.models.files import (
    FileMetadata,
    FileRecord,
    UploadBatchResult,
    UploadFailure,
    UploadItem,
)
from cortex_chat.utils import chunk_codec
from cortex_chat.utils.db_utils import with_retry
from cortex_chat.utils.logger import logger


class BlobStore:
    def __init__(
        self,
        repository: FileRepository,
        *,
        max_chunk_size: int = MAX_CHUNK_SIZE,
        max_upload_size: int = MAX_UPLOAD_SIZE,
        chunk_write_attempts: int = CHUNK_WRITE_ATTEMPTS,
        retry_base_delay: float = 0.5,
    ):
        if max_chunk_size <= 0:
            raise ValueError("max_chunk_size must be positive")
        self.repository = repository
        self.max_chunk_size = max_chunk_size
        self.max_upload_size = max_upload_size
        self._insert_chunks = with_retry(
            max_attempts=chunk_write_attempts,
            base_delay=retry_base_delay,
        )(repository.insert_chunks)

    def check_size(self, filename: str, size: int) -> None:
        """Raise FileTooLargeError when ``size`` exceeds the upload limit."""
        if size > self.max_upload_size:
            raise FileTooLargeError(filename, size, self.max_upload_size)

    async def put(self, metadata: FileMetadata, content: bytes) -> FileRecord:
        """Store a file and return its metadata record.

        Raises:
            FileTooLargeError: Before any storage I/O when the file exceeds the limit
            BlobWriteError: When storage failed; partial rows have been removed
        """
        size = len(content)
        self.check_size(metadata.filename, size)

        start = time.monotonic()
        file_id = str(uuid.uuid4())
        encoded = chunk_codec.encode_payload(content)

        if not chunk_codec.needs_chunking(encoded, self.max_chunk_size):
            record = self._record(file_id, metadata, size, chunk_count=0)
            try:
                await self.repository.insert_file(record, encoded)
            except Exception as e:
                logger.error(f"Failed to store file {metadata.filename}: {e}", exc_info=True, file_id=file_id)
                raise BlobWriteError(file_id, metadata.filename, cause=e) from e
        else:
            chunks = chunk_codec.split_encoded(encoded, self.max_chunk_size)
            record = self._record(file_id, metadata, size, chunk_count=len(chunks))
            try:
                await self.repository.insert_file(record, None)
                await self._insert_chunks(file_id, chunks)
            except Exception as e:
                logger.error(
                    f"Failed to store {len(chunks)} chunks for {metadata.filename}: {e}",
                    exc_info=True,
                    file_id=file_id,
                )
                await self._remove_partial(file_id)
                raise BlobWriteError(file_id, metadata.filename, cause=e) from e

        layout = f"{record.chunk_count} chunks" if record.is_chunked else "inline"
        logger.info(
            f"Stored {metadata.filename} ({size} bytes, {layout}) in {(time.monotonic() - start) * 1000:.0f}ms",
            file_id=file_id,
        )
        return record

    async def _remove_partial(self, file_id: str) -> None:
        try:
            await self.repository.delete_chunks(file_id)
            await self.repository.delete_file(file_id)
        except Exception as cleanup_error:
            logger.error(
                f"Cleanup after failed upload did not complete: {cleanup_error}",
                exc_info=True,
                file_id=file_id,
            )

    def _record(self, file_id: str, metadata: FileMetadata, size: int, chunk_count: int) -> FileRecord:
        return FileRecord(
            file_id=file_id,
            conversation_id=metadata.conversation_id,
            session_id=metadata.session_id,
            filename=metadata.filename,
            mime_type=metadata.mime_type,
            size_bytes=size,
            is_chunked=chunk_count > 0,
            chunk_count=chunk_count,
        )

    async def get(self, file_id: str) -> bytes:
        """Reconstruct a file's raw bytes.

        Raises:
            FileNotFoundError: Unknown file id
            ChunkCountMismatch: Stored chunk rows differ from the recorded count
            ChunkMissing: A chunk index is absent
            StorageIntegrityError: Inline content missing or not decodable
        """
        _, data = await self.get_with_record(file_id)
        return data

    async def get_with_record(self, file_id: str) -> tuple[FileRecord, bytes]:
        row = await self.repository.fetch_file(file_id)
        if row is None:
            raise FileNotFoundError(file_id)
        record, inline_content = row

        if not record.is_chunked:
            if inline_content is None:
                raise StorageIntegrityError("Inline file has no stored content", file_id=file_id)
            return record, chunk_codec.decode_payload(inline_content, file_id=file_id)

        rows = await self.repository.fetch_chunks(file_id)
        return record, chunk_codec.assemble(rows, record.chunk_count, file_id=file_id)

    async def delete(self, file_id: str) -> bool:
        """Delete chunk rows, then the metadata row. Returns False for unknown ids."""
        removed_chunks = await self.repository.delete_chunks(file_id)
        deleted = await self.repository.delete_file(file_id)
        if deleted:
            logger.info(f"Deleted file ({removed_chunks} chunks)", file_id=file_id)
        return deleted

    async def list_by_conversation(self, conversation_id: str) -> list[FileRecord]:
        return await self.repository.list_by_conversation(conversation_id)

    async def put_batch(self, items: Iterable[UploadItem]) -> UploadBatchResult:
        """Store several files; each failure is recorded without stopping the batch."""
        result = UploadBatchResult()
        for item in items:
            try:
                result.uploaded.append(await self.put(item.metadata, item.content))
            except AppException as e:
                result.errors.append(UploadFailure(filename=item.metadata.filename, error=e.message, code=e.code.value))

        if result.errors:
            logger.warning(f"Upload batch: {len(result.uploaded)} stored, {len(result.errors)} failed")
        return result


__all__ = ["BlobStore"]
