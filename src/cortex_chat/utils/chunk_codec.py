"""
Chunk codec for file content.

Payloads are base64-encoded and the encoded text is split at fixed
``max_chunk_size`` boundaries. A payload is stored inline when its encoded
length is at most ``max_chunk_size`` and chunked otherwise.
"""

from __future__ import annotations

import base64
import binascii

from collections.abc import Sequence

from cortex_chat.api.middleware.exception_handlers import (
    ChunkCountMismatch,
    ChunkMissing,
    StorageIntegrityError,
)


def encode_payload(data: bytes) -> str:
    """Text-safe representation of raw bytes."""
    return base64.b64encode(data).decode("ascii")


def decode_payload(encoded: str, file_id: str | None = None) -> bytes:
    """Reverse of :func:`encode_payload`; corrupt text raises StorageIntegrityError."""
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise StorageIntegrityError("Stored content is not valid base64", file_id=file_id, cause=e) from e


def needs_chunking(encoded: str, max_chunk_size: int) -> bool:
    return len(encoded) > max_chunk_size


def split_encoded(encoded: str, max_chunk_size: int) -> list[str]:
    """Split encoded text into ``ceil(len / max_chunk_size)`` pieces."""
    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    return [encoded[i : i + max_chunk_size] for i in range(0, len(encoded), max_chunk_size)]


def encode(data: bytes, max_chunk_size: int) -> list[str]:
    """Encode bytes into ordered chunks. Empty input yields no chunks."""
    return split_encoded(encode_payload(data), max_chunk_size)


def decode(chunks: Sequence[str], file_id: str | None = None) -> bytes:
    """Concatenate chunks (already in index order) and decode."""
    return decode_payload("".join(chunks), file_id=file_id)


def assemble(
    rows: Sequence[tuple[int, str]],
    expected_count: int,
    file_id: str | None = None,
) -> bytes:
    """Rebuild a chunked payload from ``(chunk_index, chunk_content)`` rows.

    Rows must be ordered by index and cover exactly ``0 .. expected_count - 1``.

    Raises:
        ChunkCountMismatch: Row count differs from ``expected_count``
        ChunkMissing: An index is absent or out of order
    """
    if len(rows) != expected_count:
        raise ChunkCountMismatch(expected=expected_count, found=len(rows), file_id=file_id)

    for position, (chunk_index, _) in enumerate(rows):
        if chunk_index != position:
            raise ChunkMissing(chunk_index=position, file_id=file_id)

    return decode([content for _, content in rows], file_id=file_id)


__all__ = [
    "assemble",
    "decode",
    "decode_payload",
    "encode",
    "encode_payload",
    "needs_chunking",
    "split_encoded",
]
