import base64
import math
import os

import pytest

from cortex_chat.api.middleware.exception_handlers import (
    ChunkCountMismatch,
    ChunkMissing,
    StorageIntegrityError,
)
from cortex_chat.utils import chunk_codec


@pytest.mark.parametrize("size", [0, 1, 2, 3, 767, 768, 769, 5000])
def test_encode_decode_preserves_bytes(size: int) -> None:
    data = os.urandom(size)

    chunks = chunk_codec.encode(data, max_chunk_size=1024)

    assert chunk_codec.decode(chunks) == data


def test_empty_input_has_no_chunks() -> None:
    assert chunk_codec.encode(b"", max_chunk_size=10) == []
    assert chunk_codec.decode([]) == b""


def test_chunk_count_is_ceiling_of_encoded_length() -> None:
    data = os.urandom(10_000)
    encoded_length = len(base64.b64encode(data))

    chunks = chunk_codec.encode(data, max_chunk_size=1000)

    assert len(chunks) == math.ceil(encoded_length / 1000)
    assert all(len(chunk) == 1000 for chunk in chunks[:-1])
    assert 0 < len(chunks[-1]) <= 1000


def test_needs_chunking_boundary() -> None:
    assert not chunk_codec.needs_chunking("a" * 100, 100)
    assert chunk_codec.needs_chunking("a" * 101, 100)


def test_split_rejects_non_positive_size() -> None:
    with pytest.raises(ValueError):
        chunk_codec.split_encoded("abcd", 0)


def test_assemble_rebuilds_payload() -> None:
    data = b"quarterly,revenue\nQ1,100\n" * 50
    rows = list(enumerate(chunk_codec.encode(data, max_chunk_size=64)))

    assert chunk_codec.assemble(rows, expected_count=len(rows)) == data


def test_assemble_count_mismatch() -> None:
    rows = list(enumerate(chunk_codec.encode(b"x" * 300, max_chunk_size=100)))

    with pytest.raises(ChunkCountMismatch) as exc_info:
        chunk_codec.assemble(rows[:-1], expected_count=len(rows), file_id="f1")

    assert exc_info.value.expected == len(rows)
    assert exc_info.value.found == len(rows) - 1
    assert exc_info.value.file_id == "f1"


def test_assemble_missing_index() -> None:
    rows = list(enumerate(chunk_codec.encode(b"x" * 300, max_chunk_size=100)))
    # Right number of rows, but index 1 renumbered past the end
    gapped = [rows[0], (len(rows), rows[1][1]), *rows[2:]]
    gapped.sort()

    with pytest.raises(ChunkMissing) as exc_info:
        chunk_codec.assemble(gapped, expected_count=len(rows))

    assert exc_info.value.chunk_index == 1


def test_decode_payload_rejects_corrupt_text() -> None:
    with pytest.raises(StorageIntegrityError, match="not valid base64"):
        chunk_codec.decode_payload("not base64!!", file_id="f1")
