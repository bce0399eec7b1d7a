"""
Health check endpoint (v1).
"""

from __future__ import annotations

from fastapi import APIRouter

from cortex_chat.api.dependencies import DB, Agents, AppSettings, Config
from cortex_chat.models.schemas.health import DatabaseHealth, HealthResponse
from cortex_chat.utils.db_utils import check_pool_health

router = APIRouter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Service status with database pool statistics.",
    responses={
        200: {
            "description": "System health status",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "version": "1.0.0",
                        "mock_mode": False,
                        "agents": 2,
                        "database": {
                            "healthy": True,
                            "pool_size": 10,
                            "pool_free": 8,
                            "pool_used": 2,
                        },
                    }
                }
            },
        }
    },
)
async def health_check(db: DB, agents: Agents, settings: AppSettings, config: Config) -> HealthResponse:
    stats = await check_pool_health(db)
    healthy = bool(stats.get("healthy", False))

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        version=settings.app_version,
        mock_mode=config.mock_mode,
        agents=len(agents),
        database=DatabaseHealth(
            healthy=healthy,
            pool_size=stats.get("pool_size", 0),
            pool_free=stats.get("free_connections", 0),
            pool_used=stats.get("used_connections", 0),
            error=None if healthy else "Database check failed",
        ),
    )
