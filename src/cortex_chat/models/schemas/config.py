"""
Configuration and agent listing schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class AgentSummary(BaseModel):
    """Public description of a configured agent."""

    id: str = Field(..., description="Agent id used in chat requests")
    name: str = Field(..., description="Display name")
    project: str = Field(..., description="Project the agent belongs to")


class AgentListResponse(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "agents": [{"id": "1", "name": "Sales", "project": "AI Intelligence Platform"}],
                "projectName": "AI Intelligence Platform",
            }
        },
    )

    agents: list[AgentSummary] = Field(default_factory=list)
    project_name: str = Field(..., alias="projectName", description="Project name shown in the UI")


class ConfigResponse(BaseModel):
    """Client configuration."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "demo": False,
                "mock_mode": False,
                "max_upload_size": 10485760,
                "version": "1.0.0",
                "project_name": "AI Intelligence Platform",
            }
        }
    )

    demo: bool = Field(..., description="Demo mode enabled")
    mock_mode: bool = Field(..., description="Chat answers are synthesized locally")
    max_upload_size: int = Field(..., ge=1, description="Maximum upload size in bytes")
    version: str = Field(..., description="Application version")
    project_name: str = Field(..., description="Project name shown in the UI")
