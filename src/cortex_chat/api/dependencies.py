from __future__ import annotations

from typing import Annotated

import asyncpg

from fastapi import Depends, Request

from cortex_chat.api.services.agent_relay import AgentRelay
from cortex_chat.api.services.blob_store import BlobStore
from cortex_chat.api.services.file_repository import PostgresFileRepository
from cortex_chat.api.services.thread_service import ThreadService
from cortex_chat.core.agents import AgentRegistry
from cortex_chat.core.constants import RelayConfig, Settings, get_settings
from cortex_chat.integrations.cortex_client import CortexAgentClient


def get_app_settings() -> Settings:
    """Provide application settings via dependency injection.

    Usage in routes:
        @router.get("/example")
        async def example(settings: AppSettings):
            return {"debug": settings.debug}
    """
    return get_settings()


async def get_db(request: Request) -> asyncpg.Pool:
    """Get database connection pool from application state."""
    return request.app.state.db_pool


def get_relay_config(request: Request) -> RelayConfig:
    """Relay configuration fixed at start-up."""
    return request.app.state.relay_config


def get_cortex_client(request: Request) -> CortexAgentClient:
    return request.app.state.cortex_client


def get_agent_registry(request: Request) -> AgentRegistry:
    return request.app.state.agent_registry


def get_blob_store(
    db: Annotated[asyncpg.Pool, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> BlobStore:
    """Provide the blob store backed by PostgreSQL."""
    return BlobStore(
        PostgresFileRepository(db),
        max_chunk_size=settings.max_chunk_size,
        max_upload_size=settings.max_upload_size,
        chunk_write_attempts=settings.chunk_write_attempts,
    )


def get_agent_relay(
    client: Annotated[CortexAgentClient, Depends(get_cortex_client)],
    config: Annotated[RelayConfig, Depends(get_relay_config)],
) -> AgentRelay:
    return AgentRelay(client, config)


def get_thread_service(
    client: Annotated[CortexAgentClient, Depends(get_cortex_client)],
    config: Annotated[RelayConfig, Depends(get_relay_config)],
) -> ThreadService:
    return ThreadService(client, config)


# Type aliases for cleaner route signatures
DB = Annotated[asyncpg.Pool, Depends(get_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Config = Annotated[RelayConfig, Depends(get_relay_config)]
Agents = Annotated[AgentRegistry, Depends(get_agent_registry)]
Blobs = Annotated[BlobStore, Depends(get_blob_store)]
Relay = Annotated[AgentRelay, Depends(get_agent_relay)]
Threads = Annotated[ThreadService, Depends(get_thread_service)]
