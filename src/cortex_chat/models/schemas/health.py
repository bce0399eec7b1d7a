"""
Health check API schemas.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class DatabaseHealth(BaseModel):
    """Database connection pool health."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "healthy": True,
                "pool_size": 10,
                "pool_free": 8,
                "pool_used": 2,
            }
        }
    )

    healthy: bool = Field(..., description="Database is accessible")
    pool_size: int = Field(default=0, ge=0, description="Total pool size")
    pool_free: int = Field(default=0, ge=0, description="Available connections")
    pool_used: int = Field(default=0, ge=0, description="Active connections")
    error: str | None = Field(default=None, description="Error if unhealthy")


class HealthResponse(BaseModel):
    """Overall service health."""

    status: Literal["healthy", "degraded"] = Field(..., description="Overall status")
    version: str = Field(..., description="Application version")
    mock_mode: bool = Field(..., description="Chat answers are synthesized locally")
    agents: int = Field(default=0, ge=0, description="Configured agents")
    database: DatabaseHealth
