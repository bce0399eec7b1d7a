"""
Configuration endpoints (v1).

Client configuration and the agent selector list.
"""

from __future__ import annotations

from fastapi import APIRouter

from cortex_chat.api.dependencies import Agents, AppSettings, Config
from cortex_chat.models.schemas.config import AgentListResponse, AgentSummary, ConfigResponse

router = APIRouter()


@router.get(
    "/config",
    response_model=ConfigResponse,
    summary="Get configuration",
    description="Demo/mock flags, upload limit, version and project name for the frontend.",
    responses={
        200: {
            "description": "Configuration retrieved successfully",
            "content": {
                "application/json": {
                    "example": {
                        "demo": False,
                        "mock_mode": False,
                        "max_upload_size": 10485760,
                        "version": "1.0.0",
                        "project_name": "AI Intelligence Platform",
                    }
                }
            },
        }
    },
)
async def get_config(settings: AppSettings, config: Config) -> ConfigResponse:
    return ConfigResponse(
        demo=settings.demo_mode,
        mock_mode=config.mock_mode,
        max_upload_size=settings.max_upload_size,
        version=settings.app_version,
        project_name=settings.project_name,
    )


@router.get(
    "/agents",
    response_model=AgentListResponse,
    response_model_by_alias=True,
    summary="List agents",
    description="Configured agents (credentials are never included).",
)
async def list_agents(agents: Agents, settings: AppSettings) -> AgentListResponse:
    return AgentListResponse(
        agents=[AgentSummary(**agent.summary()) for agent in agents],
        project_name=settings.project_name,
    )
