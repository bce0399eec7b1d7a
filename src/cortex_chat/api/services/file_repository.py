"""
Persistence for uploaded files.

Two tables back the store:

- ``uploaded_files``: one metadata row per file; ``file_content`` holds the
  base64 text of inline files and is NULL for chunked files.
- ``uploaded_file_chunks``: ``(file_id, chunk_index)`` keyed chunk rows.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

import asyncpg

from cortex_chat.models.files import FileRecord
from cortex_chat.utils.db_utils import transaction, with_retry

_FILE_COLUMNS = (
    "file_id, conversation_id, session_id, filename, mime_type, file_size, uploaded_at, is_chunked, chunk_count"
)


class FileRepository(Protocol):
    """Row-level operations used by the blob store."""

    async def insert_file(self, record: FileRecord, inline_content: str | None) -> None: ...

    async def insert_chunks(self, file_id: str, chunks: Sequence[str]) -> None: ...

    async def fetch_file(self, file_id: str) -> tuple[FileRecord, str | None] | None: ...

    async def fetch_chunks(self, file_id: str) -> list[tuple[int, str]]: ...

    async def delete_chunks(self, file_id: str) -> int: ...

    async def delete_file(self, file_id: str) -> bool: ...

    async def list_by_conversation(self, conversation_id: str) -> list[FileRecord]: ...


def _affected_rows(status: str) -> int:
    # asyncpg returns command tags such as "DELETE 3"
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError):
        return 0


def _record_from_row(row: Any) -> FileRecord:
    return FileRecord(
        file_id=row["file_id"],
        conversation_id=row["conversation_id"],
        session_id=row["session_id"],
        filename=row["filename"],
        mime_type=row["mime_type"],
        size_bytes=row["file_size"],
        uploaded_at=row["uploaded_at"],
        is_chunked=row["is_chunked"],
        chunk_count=row["chunk_count"],
    )


class PostgresFileRepository:
    """asyncpg implementation of :class:`FileRepository`."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def insert_file(self, record: FileRecord, inline_content: str | None) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO uploaded_files (
                    file_id, conversation_id, session_id, filename, file_content,
                    file_size, mime_type, uploaded_at, is_chunked, chunk_count
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                record.file_id,
                record.conversation_id,
                record.session_id,
                record.filename,
                inline_content,
                record.size_bytes,
                record.mime_type,
                record.uploaded_at,
                record.is_chunked,
                record.chunk_count,
            )

    async def insert_chunks(self, file_id: str, chunks: Sequence[str]) -> None:
        """Insert every chunk of a file in one transaction (all or nothing)."""
        async with transaction(self.pool) as conn:
            await conn.executemany(
                "INSERT INTO uploaded_file_chunks (file_id, chunk_index, chunk_content) VALUES ($1, $2, $3)",
                [(file_id, index, chunk) for index, chunk in enumerate(chunks)],
            )

    @with_retry()
    async def fetch_file(self, file_id: str) -> tuple[FileRecord, str | None] | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_FILE_COLUMNS}, file_content FROM uploaded_files WHERE file_id = $1",
                file_id,
            )
        if row is None:
            return None
        return _record_from_row(row), row["file_content"]

    @with_retry()
    async def fetch_chunks(self, file_id: str) -> list[tuple[int, str]]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT chunk_index, chunk_content
                FROM uploaded_file_chunks
                WHERE file_id = $1
                ORDER BY chunk_index ASC
                """,
                file_id,
            )
        return [(row["chunk_index"], row["chunk_content"]) for row in rows]

    @with_retry()
    async def delete_chunks(self, file_id: str) -> int:
        async with self.pool.acquire() as conn:
            status: str = await conn.execute("DELETE FROM uploaded_file_chunks WHERE file_id = $1", file_id)
        return _affected_rows(status)

    @with_retry()
    async def delete_file(self, file_id: str) -> bool:
        async with self.pool.acquire() as conn:
            status: str = await conn.execute("DELETE FROM uploaded_files WHERE file_id = $1", file_id)
        return _affected_rows(status) > 0

    @with_retry()
    async def list_by_conversation(self, conversation_id: str) -> list[FileRecord]:
        """Metadata only; content columns are never selected."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_FILE_COLUMNS}
                FROM uploaded_files
                WHERE conversation_id = $1
                ORDER BY uploaded_at DESC
                """,
                conversation_id,
            )
        return [_record_from_row(row) for row in rows]


__all__ = ["FileRepository", "PostgresFileRepository"]
