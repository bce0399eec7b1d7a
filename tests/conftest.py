"""Shared test fixtures for the Cortex Chat test suite.

Provides in-memory stand-ins for the file repository and the Cortex client
so the blob store and the relay can be exercised without PostgreSQL or
network access.
"""

from __future__ import annotations

import os

from collections.abc import AsyncIterator, Generator, Sequence
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

os.environ.setdefault("APP_ENV", "test")

from cortex_chat.api.middleware.request_context import clear_request_context  # noqa: E402
from cortex_chat.api.services.blob_store import BlobStore  # noqa: E402
from cortex_chat.core.agents import AgentConfig, AgentRegistry  # noqa: E402
from cortex_chat.core.constants import RelayConfig, clear_settings_cache  # noqa: E402
from cortex_chat.models.files import FileRecord  # noqa: E402

# ============================================================================
# Test Isolation
# ============================================================================


@pytest.fixture(autouse=True)
def isolate_settings() -> Generator[None, None, None]:
    """Fresh settings and no leftover request context for every test."""
    clear_settings_cache()
    clear_request_context()
    yield
    clear_settings_cache()
    clear_request_context()


@pytest.fixture
def no_retry_delay() -> Generator[AsyncMock, None, None]:
    """Skip backoff sleeps in with_retry."""
    with patch("cortex_chat.utils.db_utils.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


# ============================================================================
# File Storage
# ============================================================================


class InMemoryFileRepository:
    """Dict-backed FileRepository.

    ``chunk_insert_errors`` are raised (in order, one per call) by
    ``insert_chunks``; a failed call writes nothing, like the transactional
    bulk insert it stands in for.
    """

    def __init__(self) -> None:
        self.files: dict[str, tuple[FileRecord, str | None]] = {}
        self.chunks: dict[str, dict[int, str]] = {}
        self.calls: list[tuple[str, str]] = []
        self.chunk_insert_errors: list[Exception] = []
        self.insert_file_error: Exception | None = None

    async def insert_file(self, record: FileRecord, inline_content: str | None) -> None:
        self.calls.append(("insert_file", record.file_id))
        if self.insert_file_error is not None:
            raise self.insert_file_error
        self.files[record.file_id] = (record, inline_content)

    async def insert_chunks(self, file_id: str, chunks: Sequence[str]) -> None:
        self.calls.append(("insert_chunks", file_id))
        if self.chunk_insert_errors:
            raise self.chunk_insert_errors.pop(0)
        self.chunks[file_id] = dict(enumerate(chunks))

    async def fetch_file(self, file_id: str) -> tuple[FileRecord, str | None] | None:
        return self.files.get(file_id)

    async def fetch_chunks(self, file_id: str) -> list[tuple[int, str]]:
        return sorted(self.chunks.get(file_id, {}).items())

    async def delete_chunks(self, file_id: str) -> int:
        self.calls.append(("delete_chunks", file_id))
        return len(self.chunks.pop(file_id, {}))

    async def delete_file(self, file_id: str) -> bool:
        self.calls.append(("delete_file", file_id))
        return self.files.pop(file_id, None) is not None

    async def list_by_conversation(self, conversation_id: str) -> list[FileRecord]:
        records = [record for record, _ in self.files.values() if record.conversation_id == conversation_id]
        return sorted(records, key=lambda r: r.uploaded_at, reverse=True)


@pytest.fixture
def memory_repository() -> InMemoryFileRepository:
    return InMemoryFileRepository()


@pytest.fixture
def blob_store(memory_repository: InMemoryFileRepository, no_retry_delay: AsyncMock) -> BlobStore:
    """Blob store with a small chunk size so chunking is cheap to trigger."""
    return BlobStore(
        memory_repository,
        max_chunk_size=1024,
        max_upload_size=10 * 1024 * 1024,
        chunk_write_attempts=3,
        retry_base_delay=0,
    )


# ============================================================================
# Agents and Cortex
# ============================================================================


@pytest.fixture
def runnable_agent() -> AgentConfig:
    return AgentConfig(
        id="1",
        name="Sales",
        project="Revenue",
        account_url="https://xy12345.snowflakecomputing.com",
        db="ANALYTICS",
        schema="AGENTS",
        agent="SALES_AGENT",
        bearer_token="token-1",
        warehouse="COMPUTE_WH",
    )


@pytest.fixture
def agent_registry(runnable_agent: AgentConfig) -> AgentRegistry:
    return AgentRegistry([runnable_agent])


class FakeCortexClient:
    """Scriptable stand-in for CortexAgentClient used by the relay."""

    def __init__(self, registry: AgentRegistry):
        self.registry = registry
        self.fragments: list[str] = ["Hello", ", ", "world"]
        self.stream_error: Exception | None = None
        self.stream_bodies: list[dict[str, Any]] = []
        self.create_thread = AsyncMock(return_value=4242)

    def get_agent(self, agent_id: str | None = None) -> AgentConfig | None:
        return self.registry.get(agent_id)

    async def stream_agent(self, agent: AgentConfig, body: dict[str, Any]) -> AsyncIterator[str]:
        self.stream_bodies.append(body)
        for fragment in self.fragments:
            yield fragment
        if self.stream_error is not None:
            raise self.stream_error


@pytest.fixture
def cortex_client(agent_registry: AgentRegistry) -> FakeCortexClient:
    return FakeCortexClient(agent_registry)


@pytest.fixture
def live_config() -> RelayConfig:
    return RelayConfig(mock_mode=False, origin_application="cortex-chat-tests")


@pytest.fixture
def mock_config() -> RelayConfig:
    return RelayConfig(mock_mode=True, origin_application="cortex-chat-tests")
