"""
API v1 Router - Aggregates all v1 endpoints.

Usage in main.py:
    from cortex_chat.api.routes.v1 import router as v1_router
    app.include_router(v1_router, prefix="/api/v1")
"""

from fastapi import APIRouter

from cortex_chat.api.routes.v1 import chat, config, files, health, threads

# Create the v1 API router
router = APIRouter()

router.include_router(
    health.router,
    tags=["Health"],
)

# Streaming chat relay
router.include_router(
    chat.router,
    tags=["Chat"],
)

# Cortex thread lifecycle
router.include_router(
    threads.router,
    tags=["Threads"],
)

# Uploaded files (inline or chunked storage)
router.include_router(
    files.router,
    tags=["Files"],
)

# Client configuration and agent list
router.include_router(
    config.router,
    tags=["Configuration"],
)

__all__ = ["router"]
