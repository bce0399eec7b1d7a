import re

from unittest.mock import AsyncMock

import pytest

from cortex_chat.api.services.thread_service import ThreadService, generate_mock_thread_id
from cortex_chat.core.constants import RelayConfig


@pytest.fixture
def mock_client() -> AsyncMock:
    return AsyncMock()


def test_mock_thread_id_format() -> None:
    thread_id = generate_mock_thread_id()

    assert re.fullmatch(r"mock_thread_\d{13}_[a-z0-9]{8}", thread_id)
    assert generate_mock_thread_id() != thread_id


@pytest.mark.asyncio
async def test_mock_mode_answers_locally(mock_client: AsyncMock, mock_config: RelayConfig) -> None:
    service = ThreadService(mock_client, mock_config)

    assert await service.list_threads() == []
    thread_id = await service.create_thread()
    assert str(thread_id).startswith("mock_thread_")

    described = await service.describe_thread("t1")
    assert described["messages"] == []
    assert described["metadata"]["thread_id"] == "t1"
    assert described["metadata"]["thread_name"] == "Mock Thread"
    assert described["metadata"]["origin_application"] == mock_config.origin_application

    assert await service.update_thread("t1", "Renamed") == {"status": "Thread t1 successfully updated."}
    assert await service.delete_thread("t1") == {"success": True}

    assert mock_client.mock_calls == []


@pytest.mark.asyncio
async def test_live_mode_delegates(mock_client: AsyncMock, live_config: RelayConfig) -> None:
    mock_client.create_thread.return_value = 1234
    mock_client.describe_thread.return_value = {"metadata": {"thread_id": 1234}, "messages": []}
    service = ThreadService(mock_client, live_config)

    assert await service.create_thread(agent_id="2") == 1234
    mock_client.create_thread.assert_awaited_once_with(live_config.origin_application, "2")

    await service.describe_thread("1234", page_size=5, last_message_id=9)
    mock_client.describe_thread.assert_awaited_once_with("1234", page_size=5, last_message_id=9)

    await service.update_thread("1234", "Q3 review")
    mock_client.update_thread.assert_awaited_once_with("1234", "Q3 review")

    await service.list_threads("my-app")
    mock_client.list_threads.assert_awaited_once_with("my-app")

    await service.delete_thread("1234")
    mock_client.delete_thread.assert_awaited_once_with("1234")


@pytest.mark.asyncio
async def test_explicit_origin_overrides_default(mock_client: AsyncMock, live_config: RelayConfig) -> None:
    service = ThreadService(mock_client, live_config)

    await service.create_thread("other-app")

    mock_client.create_thread.assert_awaited_once_with("other-app", None)
