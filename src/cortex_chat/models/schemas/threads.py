"""
Thread API schemas.

Thread payloads are owned by the Cortex Agents service, so responses are
passed through as returned upstream. Only inbound bodies are modelled.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ThreadCreateRequest(BaseModel):
    """Create a thread, optionally bound to an agent."""

    model_config = ConfigDict(populate_by_name=True)

    origin_application: str | None = Field(
        default=None,
        description="Origin tag; defaults to the configured application name",
    )
    agent_id: str | None = Field(default=None, alias="agentId", description="Configured agent id")


class ThreadCreateResponse(BaseModel):
    thread_id: str = Field(..., description="Upstream thread id")


class ThreadUpdateRequest(BaseModel):
    """Rename a thread. ``thread_name`` is required; missing names are a 400."""

    thread_name: str | None = Field(default=None, description="New thread name")
