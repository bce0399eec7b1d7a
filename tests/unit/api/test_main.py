from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fastapi.testclient import TestClient

from cortex_chat.api import main
from cortex_chat.integrations.cortex_client import CortexAgentClient


@pytest.fixture
def mock_pool() -> MagicMock:
    pool = MagicMock()
    pool.close = AsyncMock()
    return pool


@pytest.fixture
def patched_lifespan(mock_pool: MagicMock) -> Generator[dict[str, MagicMock], None, None]:
    with (
        patch.object(main, "create_pool_from_settings", new_callable=AsyncMock, return_value=mock_pool) as create,
        patch.object(main, "check_pool_health", new_callable=AsyncMock, return_value={"healthy": True}) as health,
        patch.object(main, "graceful_pool_close", new_callable=AsyncMock) as close,
    ):
        yield {"create": create, "health": health, "close": close}


def test_lifespan_wires_state(patched_lifespan: dict[str, MagicMock], mock_pool: MagicMock) -> None:
    with TestClient(main.app) as client:
        state = main.app.state
        assert state.db_pool is mock_pool
        assert isinstance(state.cortex_client, CortexAgentClient)
        assert state.relay_config.origin_application == main.settings.origin_application

        response = client.get("/api/v1/config")
        assert response.status_code == 200
        assert "X-Request-ID" in response.headers

    patched_lifespan["close"].assert_awaited_once()


def test_startup_fails_when_database_unhealthy(patched_lifespan: dict[str, MagicMock], mock_pool: MagicMock) -> None:
    patched_lifespan["health"].return_value = {"healthy": False}

    with pytest.raises(RuntimeError, match="Database connection failed"), TestClient(main.app):
        pass

    mock_pool.close.assert_awaited_once()


def test_openapi_is_versioned() -> None:
    client = TestClient(main.app)

    response = client.get("/api/v1/openapi.json")

    assert response.status_code == 200
    paths = response.json()["paths"]
    assert "/api/v1/chat" in paths
    assert "/api/v1/files/{file_id}/download" in paths
    assert "/api/v1/threads/{thread_id}" in paths
