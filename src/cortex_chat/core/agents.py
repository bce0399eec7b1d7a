"""
Upstream agent registry.

Agents are declared with numbered environment variables:

    AGENT_1_SF_ACCOUNT_URL=https://xy12345.snowflakecomputing.com
    AGENT_1_SF_DB=ANALYTICS
    AGENT_1_SF_SCHEMA=AGENTS
    AGENT_1_SF_AGENT=SALES_AGENT
    AGENT_1_SF_BEARER_TOKEN=...
    AGENT_1_NAME=Sales

Each setting also accepts the short form without the ``SF_`` prefix. When no
numbered agent is complete, the legacy ``SF_*`` settings provide a single
agent with id ``default``.
"""

from __future__ import annotations

import os
import re

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from cortex_chat.core.constants import DEFAULT_PROJECT_NAME, Settings
from cortex_chat.utils.logger import logger

DEFAULT_AGENT_ID = "default"

_AGENT_KEY_PATTERN = re.compile(r"^AGENT_(\d+)_", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class AgentConfig:
    """Location and credentials of one Cortex agent."""

    id: str
    name: str
    project: str
    account_url: str | None
    db: str | None
    schema: str | None
    agent: str | None
    bearer_token: str | None = None
    warehouse: str | None = None

    @property
    def is_runnable(self) -> bool:
        """True when every value needed for an agent run is present."""
        return bool(self.bearer_token and self.account_url and self.db and self.schema and self.agent)

    def summary(self) -> dict[str, str]:
        """Public fields for the agent selector (no credentials)."""
        return {"id": self.id, "name": self.name, "project": self.project}


def _first(environ: Mapping[str, str], *keys: str) -> str | None:
    for key in keys:
        value = environ.get(key)
        if value:
            return value
    return None


def load_agents_from_env(
    environ: Mapping[str, str] | None = None,
    project_name: str = DEFAULT_PROJECT_NAME,
) -> list[AgentConfig]:
    """Build agent configurations from AGENT_<n>_* variables, ordered by n."""
    env = os.environ if environ is None else environ
    agent_ids = {int(m.group(1)) for key in env if (m := _AGENT_KEY_PATTERN.match(key))}

    agents: list[AgentConfig] = []
    for agent_id in sorted(agent_ids):
        prefix = f"AGENT_{agent_id}_"
        account_url = _first(env, f"{prefix}SF_ACCOUNT_URL", f"{prefix}ACCOUNT_URL")
        db = _first(env, f"{prefix}SF_DB", f"{prefix}DB")
        schema = _first(env, f"{prefix}SF_SCHEMA", f"{prefix}SCHEMA")
        agent = _first(env, f"{prefix}SF_AGENT", f"{prefix}AGENT")

        if not (account_url and db and schema and agent):
            logger.warning(f"Skipping agent {agent_id}: account URL, database, schema and agent name are required")
            continue

        agents.append(
            AgentConfig(
                id=str(agent_id),
                name=_first(env, f"{prefix}NAME", f"{prefix}AGENT_NAME") or f"Agent {agent_id}",
                project=_first(env, f"{prefix}PROJECT_NAME") or project_name,
                account_url=account_url,
                db=db,
                schema=schema,
                agent=agent,
                bearer_token=_first(env, f"{prefix}SF_BEARER_TOKEN", f"{prefix}BEARER_TOKEN", f"{prefix}TOKEN"),
                warehouse=_first(env, f"{prefix}SF_WAREHOUSE", f"{prefix}WAREHOUSE"),
            )
        )
    return agents


def legacy_agent(settings: Settings) -> AgentConfig:
    """Agent described by the single-agent SF_* settings (possibly incomplete)."""
    return AgentConfig(
        id=DEFAULT_AGENT_ID,
        name=settings.agent_name,
        project=settings.project_name,
        account_url=settings.sf_account_url,
        db=settings.sf_db,
        schema=settings.sf_schema,
        agent=settings.sf_agent,
        bearer_token=settings.sf_bearer_token,
        warehouse=settings.sf_warehouse,
    )


class AgentRegistry:
    """Read-only lookup of configured agents."""

    def __init__(self, agents: list[AgentConfig], fallback: AgentConfig | None = None):
        self._agents = list(agents)
        self._fallback = fallback

    @classmethod
    def from_settings(cls, settings: Settings, environ: Mapping[str, str] | None = None) -> AgentRegistry:
        agents = load_agents_from_env(environ, project_name=settings.project_name)
        fallback = legacy_agent(settings)
        if not agents and fallback.account_url and fallback.db and fallback.schema and fallback.agent:
            agents = [fallback]

        registry = cls(agents, fallback=fallback)
        logger.info(f"Loaded {len(agents)} agent(s) from environment")
        for agent in agents:
            if not agent.warehouse:
                logger.warning(f"Agent {agent.id} ({agent.name}) has no warehouse configured")
        return registry

    def __iter__(self) -> Iterator[AgentConfig]:
        return iter(self._agents)

    def __len__(self) -> int:
        return len(self._agents)

    def get(self, agent_id: str | None = None) -> AgentConfig | None:
        """Resolve an agent id; None or 'default' means the first configured agent."""
        if not agent_id or agent_id == DEFAULT_AGENT_ID:
            if self._agents:
                return self._agents[0]
            return self._fallback
        return next((a for a in self._agents if a.id == agent_id), None)
