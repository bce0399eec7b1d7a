"""
Thread lifecycle service.

Proxies thread operations to Cortex, or answers them locally in mock mode.
"""

from __future__ import annotations

import secrets
import string
import time

from typing import Any

from cortex_chat.core.constants import THREAD_DESCRIBE_PAGE_SIZE, RelayConfig
from cortex_chat.integrations.cortex_client import CortexAgentClient, ThreadId
from cortex_chat.utils.logger import logger

_MOCK_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_mock_thread_id() -> str:
    """``mock_thread_<epoch ms>_<8 random base36 chars>``."""
    suffix = "".join(secrets.choice(_MOCK_SUFFIX_ALPHABET) for _ in range(8))
    return f"mock_thread_{int(time.time() * 1000)}_{suffix}"


class ThreadService:
    def __init__(self, client: CortexAgentClient, config: RelayConfig):
        self.client = client
        self.config = config

    async def list_threads(self, origin_application: str | None = None) -> Any:
        if self.config.mock_mode:
            return []
        return await self.client.list_threads(origin_application)

    async def create_thread(self, origin_application: str | None = None, agent_id: str | None = None) -> ThreadId:
        if self.config.mock_mode:
            thread_id = generate_mock_thread_id()
            logger.debug(f"Created mock thread {thread_id}")
            return thread_id
        return await self.client.create_thread(origin_application or self.config.origin_application, agent_id)

    async def describe_thread(
        self,
        thread_id: str,
        page_size: int = THREAD_DESCRIBE_PAGE_SIZE,
        last_message_id: int | None = None,
    ) -> Any:
        if self.config.mock_mode:
            now_ms = int(time.time() * 1000)
            return {
                "metadata": {
                    "thread_id": thread_id,
                    "thread_name": "Mock Thread",
                    "origin_application": self.config.origin_application,
                    "created_on": now_ms,
                    "updated_on": now_ms,
                },
                "messages": [],
            }
        return await self.client.describe_thread(thread_id, page_size=page_size, last_message_id=last_message_id)

    async def update_thread(self, thread_id: str, thread_name: str) -> Any:
        if self.config.mock_mode:
            return {"status": f"Thread {thread_id} successfully updated."}
        return await self.client.update_thread(thread_id, thread_name)

    async def delete_thread(self, thread_id: str) -> Any:
        if self.config.mock_mode:
            return {"success": True}
        return await self.client.delete_thread(thread_id)


__all__ = ["ThreadService", "generate_mock_thread_id"]
