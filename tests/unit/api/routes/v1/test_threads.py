from unittest.mock import AsyncMock

import pytest

from fastapi import FastAPI
from fastapi.testclient import TestClient

from cortex_chat.api.dependencies import get_thread_service
from cortex_chat.api.middleware.exception_handlers import UpstreamUnavailable, register_exception_handlers
from cortex_chat.api.routes.v1.threads import router
from cortex_chat.api.services.thread_service import ThreadService
from cortex_chat.core.constants import RelayConfig

THREAD_ID = "1234"


@pytest.fixture
def mock_thread_service() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(mock_thread_service: AsyncMock) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router, prefix="/api/v1")

    app.dependency_overrides[get_thread_service] = lambda: mock_thread_service
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def test_list_threads(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.list_threads.return_value = [{"thread_id": 1, "thread_name": "Q3"}]

    response = client.get("/api/v1/threads?origin_application=my-app")

    assert response.status_code == 200
    assert response.json() == [{"thread_id": 1, "thread_name": "Q3"}]
    mock_thread_service.list_threads.assert_awaited_once_with("my-app")


def test_create_thread_without_body(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.create_thread.return_value = 1234

    response = client.post("/api/v1/threads")

    assert response.status_code == 200
    assert response.json() == {"thread_id": "1234"}
    mock_thread_service.create_thread.assert_awaited_once_with(None, None)


def test_create_thread_with_agent(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.create_thread.return_value = "abc"

    response = client.post("/api/v1/threads", json={"origin_application": "my-app", "agentId": "2"})

    assert response.status_code == 200
    mock_thread_service.create_thread.assert_awaited_once_with("my-app", "2")


def test_create_thread_upstream_failure(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.create_thread.side_effect = UpstreamUnavailable(
        "Authentication Failed: Please check your Snowflake credentials and bearer token.", status_code=401
    )

    response = client.post("/api/v1/threads")

    assert response.status_code == 502
    error = response.json()["error"]
    assert error["code"] == "EXT_7030"
    assert error["message"].startswith("Authentication Failed")


def test_describe_thread(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.describe_thread.return_value = {"metadata": {"thread_id": 1234}, "messages": []}

    response = client.get(f"/api/v1/threads/{THREAD_ID}?page_size=5&last_message_id=9")

    assert response.status_code == 200
    assert response.json()["messages"] == []
    mock_thread_service.describe_thread.assert_awaited_once_with(THREAD_ID, page_size=5, last_message_id=9)


def test_describe_thread_page_size_bounds(client: TestClient) -> None:
    response = client.get(f"/api/v1/threads/{THREAD_ID}?page_size=0")

    assert response.status_code == 422


def test_update_thread(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.update_thread.return_value = {"status": f"Thread {THREAD_ID} successfully updated."}

    response = client.post(f"/api/v1/threads/{THREAD_ID}", json={"thread_name": "Renamed"})

    assert response.status_code == 200
    mock_thread_service.update_thread.assert_awaited_once_with(THREAD_ID, "Renamed")


def test_update_thread_requires_name(client: TestClient, mock_thread_service: AsyncMock) -> None:
    response = client.post(f"/api/v1/threads/{THREAD_ID}", json={})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "thread_name is required"
    mock_thread_service.update_thread.assert_not_called()


def test_delete_thread(client: TestClient, mock_thread_service: AsyncMock) -> None:
    mock_thread_service.delete_thread.return_value = {"success": True}

    response = client.delete(f"/api/v1/threads/{THREAD_ID}")

    assert response.status_code == 200
    assert response.json() == {"success": True}


def test_mock_mode_end_to_end(app: FastAPI, mock_config: RelayConfig) -> None:
    app.dependency_overrides[get_thread_service] = lambda: ThreadService(AsyncMock(), mock_config)
    client = TestClient(app)

    thread_id = client.post("/api/v1/threads").json()["thread_id"]
    described = client.get(f"/api/v1/threads/{thread_id}").json()

    assert thread_id.startswith("mock_thread_")
    assert described["metadata"]["thread_id"] == thread_id
    assert client.get("/api/v1/threads").json() == []
