from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cortex_chat.api.middleware.exception_handlers import register_exception_handlers
from cortex_chat.api.middleware.request_context import RequestContextMiddleware
from cortex_chat.api.routes.v1 import router as v1_router
from cortex_chat.core.agents import AgentRegistry
from cortex_chat.core.constants import RelayConfig, get_settings
from cortex_chat.integrations.cortex_client import CortexAgentClient
from cortex_chat.utils.client_factory import create_http_client
from cortex_chat.utils.db_utils import check_pool_health, create_pool_from_settings, graceful_pool_close
from cortex_chat.utils.logger import configure_uvicorn_logging, logger

# Settings are loaded via Pydantic Settings with environment-specific file support
# (.env, .env.{APP_ENV}, .env.local) - no manual dotenv loading needed
settings = get_settings()

if settings.debug:
    from cortex_chat.core.constants import _get_env_files

    logger.info(f"Env files: {[f.name for f in _get_env_files()]}")
    logger.info(
        f"Settings: app_env={settings.app_env}, mock_mode={settings.mock_mode}, "
        f"db_pool=[{settings.db_pool_min_size},{settings.db_pool_max_size}]"
    )

# Configure uvicorn logging at module level to ensure workers use it
configure_uvicorn_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown with graceful handling."""
    app.state.relay_config = RelayConfig.from_settings(settings)
    app.state.agent_registry = AgentRegistry.from_settings(settings)

    app.state.db_pool = await create_pool_from_settings(settings)
    health = await check_pool_health(app.state.db_pool)
    if not health["healthy"]:
        logger.error("Database health check failed during startup")
        await app.state.db_pool.close()
        raise RuntimeError("Database connection failed")
    logger.info(f"Database pool healthy: {health}")

    app.state.http_client = create_http_client(read_timeout=settings.http_read_timeout)
    app.state.cortex_client = CortexAgentClient(app.state.http_client, app.state.agent_registry)

    if app.state.relay_config.mock_mode:
        logger.warning("MOCK_MODE is on: chat replies are synthesized locally")

    try:
        yield
    finally:
        logger.info("Initiating graceful shutdown sequence")
        await app.state.http_client.aclose()
        await graceful_pool_close(app.state.db_pool, timeout=settings.shutdown_timeout)


app = FastAPI(
    title="Cortex Chat API",
    description="""
## Cortex Chat API

Chat front-end backend for Snowflake Cortex Agents.

### Features
- **Streaming chat**: one user turn relayed to a Cortex agent, streamed back as Server-Sent Events
- **Threads**: create, describe, rename and delete Cortex threads
- **Files**: upload, list, read and delete files stored in PostgreSQL (large files are chunked)
- **Mock mode**: deterministic local replies for offline use

### Versioning
API uses URL path versioning: `/api/v1/...`
""",
    version=settings.app_version,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoint"},
        {"name": "Chat", "description": "Streaming agent relay"},
        {"name": "Threads", "description": "Cortex thread lifecycle"},
        {"name": "Files", "description": "File upload, download and management"},
        {"name": "Configuration", "description": "Client configuration and agent list"},
    ],
    openapi_url="/api/v1/openapi.json",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
)

register_exception_handlers(app)

# Note: Middleware is executed in reverse order of registration
app.add_middleware(RequestContextMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_methods_list,
    allow_headers=settings.cors_headers_list,
)

app.include_router(v1_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "cortex_chat.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        reload_dirs=["src"],
        log_config=None,
    )
