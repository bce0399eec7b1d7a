import json

from collections.abc import AsyncIterator, Callable

import httpx
import pytest

from cortex_chat.api.middleware.exception_handlers import ResourceNotFoundError, UpstreamUnavailable
from cortex_chat.core.agents import AgentConfig, AgentRegistry
from cortex_chat.integrations.cortex_client import (
    CortexAgentClient,
    friendly_error_message,
    iter_sse_messages,
    normalize_thread_id,
    normalize_url,
)
from cortex_chat.utils.client_factory import create_http_client

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, registry: AgentRegistry) -> CortexAgentClient:
    return CortexAgentClient(create_http_client(transport=httpx.MockTransport(handler)), registry)


def _sse(*messages: tuple[str, dict]) -> bytes:
    return "".join(f"event: {event}\ndata: {json.dumps(data)}\n\n" for event, data in messages).encode()


async def _lines(*lines: str) -> AsyncIterator[str]:
    for line in lines:
        yield line


# ============================================================================
# Helpers
# ============================================================================


@pytest.mark.parametrize(
    "url, expected",
    [
        ("xy12345.snowflakecomputing.com", "https://xy12345.snowflakecomputing.com"),
        ("  https://xy12345.snowflakecomputing.com/ ", "https://xy12345.snowflakecomputing.com"),
        ("http://localhost:8080", "http://localhost:8080"),
        ("", None),
        (None, None),
    ],
)
def test_normalize_url(url: str | None, expected: str | None) -> None:
    assert normalize_url(url) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (1234, 1234),
        (" abc ", "abc"),
        ({"thread_id": 5}, 5),
        ({"threadId": "t"}, "t"),
        ({"id": "i"}, "i"),
        ({"thread_id": {"id": "nested"}}, "nested"),
        ({"thread_id": "", "id": "fallback"}, "fallback"),
        ({}, None),
        (True, None),
        (None, None),
    ],
)
def test_normalize_thread_id(value: object, expected: object) -> None:
    assert normalize_thread_id(value) == expected


def test_friendly_error_messages() -> None:
    assert friendly_error_message(401, "{}").startswith("Authentication Failed")
    assert "CORTEX_AGENT_USER role" in friendly_error_message(403, '{"message": "needs CORTEX_USER"}')
    assert friendly_error_message(403, '{"message": "nope"}') == (
        "Access Denied: You do not have permission to use this feature."
    )
    assert friendly_error_message(422, '{"message": "account suspended"}').startswith("Account Issue")
    assert friendly_error_message(422, '{"message": "bad field"}') == "Validation Error: bad field"
    assert friendly_error_message(500, '{"message": "warehouse down"}') == "warehouse down"
    assert friendly_error_message(500, "") == "Snowflake API error (500)"
    assert friendly_error_message(502, "<html>gateway</html>") == "Snowflake API error (502): <html>gateway</html>"


@pytest.mark.asyncio
async def test_iter_sse_messages_groups_lines() -> None:
    lines = _lines(
        ": keep-alive",
        "event: response.text.delta",
        'data: {"text": "a"}',
        "",
        "data: line1",
        "data: line2",
        "",
        "event: done",
        "data: {}",
    )

    messages = [m async for m in iter_sse_messages(lines)]

    assert [(m.event, m.data) for m in messages] == [
        ("response.text.delta", '{"text": "a"}'),
        ("message", "line1\nline2"),
        ("done", "{}"),
    ]


# ============================================================================
# Threads
# ============================================================================


@pytest.mark.asyncio
async def test_create_thread(agent_registry: AgentRegistry) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"thread_id": 1234})

    client = _client(handler, agent_registry)

    assert await client.create_thread("my-app") == 1234
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://xy12345.snowflakecomputing.com/api/v2/cortex/threads"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert json.loads(request.content) == {"origin_application": "my-app"}


@pytest.mark.asyncio
async def test_create_thread_accepts_bare_id(agent_registry: AgentRegistry) -> None:
    client = _client(lambda request: httpx.Response(200, json=987), agent_registry)

    assert await client.create_thread() == 987


@pytest.mark.asyncio
async def test_create_thread_upstream_error(agent_registry: AgentRegistry) -> None:
    client = _client(lambda request: httpx.Response(401, json={"message": "bad token"}), agent_registry)

    with pytest.raises(UpstreamUnavailable, match="Authentication Failed") as exc_info:
        await client.create_thread()

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_create_thread_transport_error(agent_registry: AgentRegistry) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = _client(handler, agent_registry)

    with pytest.raises(UpstreamUnavailable, match="connection refused"):
        await client.create_thread()


@pytest.mark.asyncio
async def test_thread_ops_need_credentials() -> None:
    registry = AgentRegistry(
        [AgentConfig(id="1", name="A", project="P", account_url=None, db=None, schema=None, agent=None)]
    )
    client = _client(lambda request: httpx.Response(200), registry)

    with pytest.raises(UpstreamUnavailable, match="Missing Snowflake configuration"):
        await client.list_threads()


@pytest.mark.asyncio
async def test_unknown_agent_for_thread(agent_registry: AgentRegistry) -> None:
    client = _client(lambda request: httpx.Response(200), agent_registry)

    with pytest.raises(ResourceNotFoundError):
        await client.create_thread(agent_id="42")


@pytest.mark.asyncio
async def test_describe_update_list_delete(agent_registry: AgentRegistry) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "DELETE":
            return httpx.Response(200)
        return httpx.Response(200, json={"ok": True})

    client = _client(handler, agent_registry)

    assert await client.describe_thread(1234, page_size=5, last_message_id=9) == {"ok": True}
    await client.update_thread(1234, "Renamed")
    await client.list_threads("my-app")
    assert await client.delete_thread(1234) is None

    describe, update, listing, delete = seen
    assert describe.url.path.endswith("/threads/1234")
    assert describe.url.params["page_size"] == "5"
    assert describe.url.params["last_message_id"] == "9"
    assert json.loads(update.content) == {"thread_name": "Renamed"}
    assert listing.url.params["origin_application"] == "my-app"
    assert delete.method == "DELETE"


# ============================================================================
# Agent runs
# ============================================================================


@pytest.mark.asyncio
async def test_stream_agent_yields_text_deltas(agent_registry: AgentRegistry, runnable_agent: AgentConfig) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        body = _sse(
            ("response.status", {"status": "planning"}),
            ("response.text.delta", {"text": "Hel"}),
            ("response.thinking.delta", {"text": "hmm"}),
            ("response.text.delta", {"text": "lo"}),
            ("response", {"done": True}),
        )
        return httpx.Response(200, content=body, headers={"Content-Type": "text/event-stream"})

    client = _client(handler, agent_registry)

    fragments = [f async for f in client.stream_agent(runnable_agent, {"messages": [], "stream": True})]

    assert fragments == ["Hel", "lo"]
    assert seen[0].url.path == "/api/v2/databases/ANALYTICS/schemas/AGENTS/agents/SALES_AGENT:run"
    assert seen[0].headers["Accept"] == "text/event-stream"


@pytest.mark.asyncio
async def test_stream_agent_error_event(agent_registry: AgentRegistry, runnable_agent: AgentConfig) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = _sse(("response.text.delta", {"text": "partial"}), ("error", {"message": "Agent crashed"}))
        return httpx.Response(200, content=body)

    client = _client(handler, agent_registry)
    fragments: list[str] = []

    with pytest.raises(UpstreamUnavailable, match="Agent crashed"):
        async for fragment in client.stream_agent(runnable_agent, {}):
            fragments.append(fragment)

    assert fragments == ["partial"]


@pytest.mark.asyncio
async def test_stream_agent_http_error(agent_registry: AgentRegistry, runnable_agent: AgentConfig) -> None:
    client = _client(
        lambda request: httpx.Response(422, json={"message": "payment method required"}),
        agent_registry,
    )

    with pytest.raises(UpstreamUnavailable, match="Account Issue"):
        async for _ in client.stream_agent(runnable_agent, {}):
            pass
