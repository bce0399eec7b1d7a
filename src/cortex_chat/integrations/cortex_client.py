"""
Client for the Snowflake Cortex Agents REST API.

Covers the thread lifecycle endpoints and the streaming ``:run`` endpoint.
The run stream is Server-Sent Events; only ``response.text.delta`` payloads
carry reply text, and an ``error`` event aborts the run.
"""

from __future__ import annotations

import json

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from cortex_chat.api.middleware.exception_handlers import ResourceNotFoundError, UpstreamUnavailable
from cortex_chat.core.agents import AgentConfig, AgentRegistry
from cortex_chat.core.constants import (
    THREAD_DESCRIBE_PAGE_SIZE,
    UPSTREAM_ERROR_EVENT,
    UPSTREAM_TEXT_DELTA_EVENT,
)
from cortex_chat.utils.logger import logger

ThreadId = str | int

_THREAD_ID_KEYS = ("thread_id", "threadId", "id")


def normalize_url(url: str | None) -> str | None:
    """Strip whitespace and a trailing slash; assume https when no scheme is given."""
    if not url:
        return None
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    return url.rstrip("/")


def normalize_thread_id(value: Any) -> ThreadId | None:
    """Reduce a thread id or thread descriptor object to its scalar id.

    Descriptor objects are searched for ``thread_id``, ``threadId`` and ``id``
    in that order (nested descriptors are unwrapped). Returns None when no id
    is present.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Mapping):
        for key in _THREAD_ID_KEYS:
            candidate = value.get(key)
            if candidate not in (None, ""):
                return normalize_thread_id(candidate)
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return value.strip() or None
    return None


def friendly_error_message(status_code: int, body: str) -> str:
    """Translate an upstream error response into a message fit for end users."""
    try:
        data = json.loads(body) if body else {}
    except json.JSONDecodeError:
        return f"Snowflake API error ({status_code}): {body or 'Unknown error'}"

    upstream_message = ""
    if isinstance(data, dict):
        upstream_message = str(data.get("message") or data.get("error") or "")

    if status_code == 401:
        return "Authentication Failed: Please check your Snowflake credentials and bearer token."
    if status_code == 403:
        if "CORTEX_USER" in upstream_message or "CORTEX_AGENT_USER" in upstream_message:
            return (
                "Access Denied: You need the SNOWFLAKE.CORTEX_USER or SNOWFLAKE.CORTEX_AGENT_USER role "
                "to use Cortex Agents. Please contact your Snowflake administrator to grant you these roles."
            )
        return "Access Denied: You do not have permission to use this feature."
    if status_code == 422:
        if "suspended" in upstream_message or "payment" in upstream_message:
            return (
                "Account Issue: Your Snowflake account has been suspended due to payment method issues. "
                "Please update your payment method in your Snowflake account settings."
            )
        return f"Validation Error: {upstream_message or 'Invalid request parameters.'}"
    return upstream_message or f"Snowflake API error ({status_code})"


@dataclass(frozen=True, slots=True)
class SSEMessage:
    event: str
    data: str


async def iter_sse_messages(lines: AsyncIterator[str]) -> AsyncIterator[SSEMessage]:
    """Group Server-Sent Events lines into messages.

    A blank line dispatches the pending message; a message still pending
    when the input ends is dispatched as well.
    """
    event = "message"
    data_lines: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r")
        if not line:
            if data_lines:
                yield SSEMessage(event=event, data="\n".join(data_lines))
            event, data_lines = "message", []
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        value = value.removeprefix(" ")
        if name == "event":
            event = value
        elif name == "data":
            data_lines.append(value)

    if data_lines:
        yield SSEMessage(event=event, data="\n".join(data_lines))


class CortexAgentClient:
    """Async client over one shared ``httpx.AsyncClient``."""

    def __init__(self, http: httpx.AsyncClient, registry: AgentRegistry):
        self._http = http
        self.registry = registry

    def get_agent(self, agent_id: str | None = None) -> AgentConfig | None:
        return self.registry.get(agent_id)

    def _thread_target(self, agent_id: str | None, operation: str) -> tuple[str, dict[str, str]]:
        agent = self.registry.get(agent_id)
        if agent is None:
            raise ResourceNotFoundError("Agent", agent_id)

        base_url = normalize_url(agent.account_url)
        if not agent.bearer_token or not base_url:
            raise UpstreamUnavailable(f"Missing Snowflake configuration for thread {operation}")

        headers = {
            "Authorization": f"Bearer {agent.bearer_token}",
            "Content-Type": "application/json",
        }
        return f"{base_url}/api/v2/cortex/threads", headers

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        *,
        operation: str,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(method, url, headers=headers, json=json_body, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Thread {operation} request failed: {e}")
            raise UpstreamUnavailable(f"Thread {operation} failed: {e}", cause=e) from e

        if response.status_code >= 400:
            logger.error(f"Thread {operation} returned {response.status_code}: {response.text[:500]}")
            raise UpstreamUnavailable(
                friendly_error_message(response.status_code, response.text),
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except json.JSONDecodeError:
            return response.text

    async def create_thread(self, origin_application: str | None = None, agent_id: str | None = None) -> ThreadId:
        """Create a thread and return its scalar id."""
        url, headers = self._thread_target(agent_id, "creation")
        body = {"origin_application": origin_application} if origin_application else {}

        data = await self._send("POST", url, headers, operation="creation", json_body=body)
        thread_id = normalize_thread_id(data)
        if thread_id is None:
            raise UpstreamUnavailable("Thread creation returned no thread id")

        logger.info(f"Created thread {thread_id}", thread_id=str(thread_id))
        return thread_id

    async def describe_thread(
        self,
        thread_id: ThreadId,
        page_size: int = THREAD_DESCRIBE_PAGE_SIZE,
        last_message_id: int | None = None,
    ) -> Any:
        url, headers = self._thread_target(None, "description")
        params: dict[str, Any] = {"page_size": page_size}
        if last_message_id:
            params["last_message_id"] = last_message_id
        return await self._send("GET", f"{url}/{thread_id}", headers, operation="description", params=params)

    async def update_thread(self, thread_id: ThreadId, thread_name: str) -> Any:
        url, headers = self._thread_target(None, "update")
        return await self._send(
            "POST", f"{url}/{thread_id}", headers, operation="update", json_body={"thread_name": thread_name}
        )

    async def list_threads(self, origin_application: str | None = None) -> Any:
        url, headers = self._thread_target(None, "listing")
        params = {"origin_application": origin_application} if origin_application else None
        return await self._send("GET", url, headers, operation="listing", params=params)

    async def delete_thread(self, thread_id: ThreadId) -> Any:
        url, headers = self._thread_target(None, "deletion")
        return await self._send("DELETE", f"{url}/{thread_id}", headers, operation="deletion")

    async def stream_agent(self, agent: AgentConfig, body: dict[str, Any]) -> AsyncIterator[str]:
        """Run an agent and yield reply text fragments in arrival order.

        Leaving the iteration early (including task cancellation) closes the
        upstream response.

        Raises:
            UpstreamUnavailable: Transport failure, HTTP error status, or an
                upstream ``error`` event
        """
        base_url = normalize_url(agent.account_url)
        if not base_url:
            raise UpstreamUnavailable(f"Invalid account URL format for agent {agent.id}")

        url = f"{base_url}/api/v2/databases/{agent.db}/schemas/{agent.schema}/agents/{agent.agent}:run"
        headers = {
            "Authorization": f"Bearer {agent.bearer_token}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

        logger.debug(f"Running agent {agent.id} at {url}")
        try:
            async with self._http.stream("POST", url, json=body, headers=headers) as response:
                if response.status_code >= 400:
                    error_body = (await response.aread()).decode("utf-8", errors="replace")
                    logger.error(f"Agent {agent.id} returned {response.status_code}: {error_body[:500]}")
                    raise UpstreamUnavailable(
                        friendly_error_message(response.status_code, error_body),
                        status_code=response.status_code,
                    )

                async for message in iter_sse_messages(response.aiter_lines()):
                    if message.event == UPSTREAM_TEXT_DELTA_EVENT:
                        text = _payload(message).get("text")
                        if isinstance(text, str):
                            yield text
                    elif message.event == UPSTREAM_ERROR_EVENT:
                        payload = _payload(message)
                        raise UpstreamUnavailable(str(payload.get("message") or message.data or "Agent run failed"))
        except httpx.HTTPError as e:
            logger.error(f"Failed to run agent {agent.id}: {e}")
            raise UpstreamUnavailable(f"Failed to run agent: {e}", cause=e) from e


def _payload(message: SSEMessage) -> dict[str, Any]:
    try:
        data = json.loads(message.data)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring non-JSON payload for upstream event '{message.event}'")
        return {}
    return data if isinstance(data, dict) else {}


__all__ = [
    "CortexAgentClient",
    "SSEMessage",
    "ThreadId",
    "friendly_error_message",
    "iter_sse_messages",
    "normalize_thread_id",
    "normalize_url",
]
