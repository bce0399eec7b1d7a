"""
Agent relay: one user turn in, one event stream out.

Per request the relay:

1. validates the payload (exactly one ``user`` message, ``stream`` is true,
   numeric ``parent_message_id``) before any I/O;
2. resolves the thread (reuses the supplied id, or creates one; creation
   failures are logged and the turn continues without a thread id);
3. dispatches to the mock reply or the live agent run;
4. forwards text fragments in arrival order and terminates with exactly one
   ``done`` or ``error`` event, closing the adapter once.
"""

from __future__ import annotations

import asyncio
import time

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any

from cortex_chat.api.middleware.exception_handlers import AppException, UpstreamUnavailable, ValidationException
from cortex_chat.api.middleware.request_context import update_request_context
from cortex_chat.api.services.stream_adapter import StreamAdapter
from cortex_chat.api.services.thread_service import generate_mock_thread_id
from cortex_chat.core.constants import MOCK_FALLBACK_MESSAGE, RelayConfig
from cortex_chat.integrations.cortex_client import CortexAgentClient, ThreadId, normalize_thread_id
from cortex_chat.models.error_models import ErrorCode
from cortex_chat.models.events import DoneEvent, ErrorEvent, TextEvent
from cortex_chat.utils.logger import logger


def build_mock_reply(message: str) -> str:
    return (
        "🤖 (mock) I am a demo Snowflake Cortex agent. "
        f'You said: "{message}". '
        "Connect real Snowflake credentials in the backend to talk to an actual agent."
    )


def extract_user_text(message: Mapping[str, Any]) -> str:
    """Text of the first content part, or a placeholder when there is none."""
    content = message.get("content")
    if isinstance(content, str):
        return content or MOCK_FALLBACK_MESSAGE
    if isinstance(content, list) and content and isinstance(content[0], Mapping):
        text = content[0].get("text")
        if isinstance(text, str) and text:
            return text
    return MOCK_FALLBACK_MESSAGE


@dataclass(frozen=True, slots=True)
class RelayRequest:
    """A validated chat turn."""

    messages: list[dict[str, Any]]
    user_text: str
    thread_id: ThreadId | None = None
    parent_message_id: int = 0
    agent_id: str | None = None


def _bad_request(message: str) -> ValidationException:
    return ValidationException(message, code=ErrorCode.VALIDATION_BAD_REQUEST)


def _parse_parent_message_id(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _bad_request("parent_message_id must be a number")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise _bad_request("parent_message_id must be a number")


def _parse_thread_id(value: Any) -> ThreadId | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, Mapping)):
        raise _bad_request("thread_id must be a string, an integer or a thread object")
    thread_id = normalize_thread_id(value)
    if thread_id is None and isinstance(value, Mapping):
        raise _bad_request("thread_id object must contain thread_id, threadId or id")
    return thread_id


class AgentRelay:
    def __init__(self, client: CortexAgentClient, config: RelayConfig):
        self.client = client
        self.config = config

    def validate(self, payload: Any) -> RelayRequest:
        """Validation gate; raises ValidationException (400) before any I/O."""
        if not isinstance(payload, Mapping):
            raise _bad_request("Request body must be a JSON object")

        messages = payload.get("messages")
        if not isinstance(messages, list):
            raise _bad_request("messages array is required")
        if len(messages) != 1 or not isinstance(messages[0], Mapping) or messages[0].get("role") != "user":
            raise _bad_request("messages must contain exactly one user message")

        if payload.get("stream") is not True:
            raise _bad_request("stream must be true")

        agent_id = payload.get("agent_id")
        if agent_id is not None and not isinstance(agent_id, (str, int)):
            raise _bad_request("agent_id must be a string")

        return RelayRequest(
            messages=[dict(messages[0])],
            user_text=extract_user_text(messages[0]),
            thread_id=_parse_thread_id(payload.get("thread_id")),
            parent_message_id=_parse_parent_message_id(payload.get("parent_message_id")),
            agent_id=str(agent_id) if agent_id is not None else None,
        )

    async def resolve_thread(self, request: RelayRequest) -> ThreadId | None:
        """Supplied id as-is, otherwise a new thread; None when creation fails."""
        if request.thread_id is not None:
            return request.thread_id

        if self.config.mock_mode:
            return generate_mock_thread_id()

        try:
            return await self.client.create_thread(self.config.origin_application, request.agent_id)
        except AppException as e:
            logger.warning(f"Failed to create thread, continuing without one: {e.message}")
            return None

    def upstream_body(self, request: RelayRequest, thread_id: ThreadId | None) -> dict[str, Any]:
        body: dict[str, Any] = {"messages": request.messages, "stream": True}
        if thread_id is not None:
            body["thread_id"] = thread_id
        body["parent_message_id"] = request.parent_message_id
        return body

    async def _live_fragments(self, request: RelayRequest, thread_id: ThreadId | None) -> AsyncIterator[str]:
        agent = self.client.get_agent(request.agent_id)
        if agent is None:
            raise UpstreamUnavailable(f"Agent with ID '{request.agent_id}' not found")

        if not agent.is_runnable:
            logger.warning(f"Missing Snowflake configuration for agent {agent.id}, falling back to mock")
            yield f'[MOCK] You said: "{request.user_text}"'
            return

        async for fragment in self.client.stream_agent(agent, self.upstream_body(request, thread_id)):
            yield fragment

    async def run(self, request: RelayRequest, adapter: StreamAdapter) -> None:
        """Drive one validated turn into ``adapter``. The adapter is always closed on return."""
        start = time.monotonic()
        mode = "mock" if self.config.mock_mode else "live"
        text_events = 0
        outcome = "done"
        thread_id: ThreadId | None = None

        try:
            thread_id = await self.resolve_thread(request)
            if thread_id is not None:
                update_request_context(thread_id=str(thread_id))

            if self.config.mock_mode:
                adapter.emit(TextEvent(text=build_mock_reply(request.user_text)))
                text_events += 1
            else:
                async for fragment in self._live_fragments(request, thread_id):
                    adapter.emit(TextEvent(text=fragment))
                    text_events += 1

            adapter.emit(DoneEvent())
        except asyncio.CancelledError:
            outcome = "cancelled"
            logger.info("Client disconnected, relay cancelled")
            raise
        except Exception as e:
            outcome = "error"
            message = e.message if isinstance(e, AppException) else (str(e) or type(e).__name__)
            logger.error(f"Relay failed: {message}", exc_info=not isinstance(e, AppException))
            self._emit_error(adapter, message)
        finally:
            adapter.close()
            logger.log_relay_turn(
                user_text=request.user_text,
                thread_id=thread_id,
                parent_message_id=request.parent_message_id,
                mode=mode,
                text_events=text_events,
                outcome=outcome,
                duration_ms=(time.monotonic() - start) * 1000,
                agent_id=request.agent_id,
            )

    def _emit_error(self, adapter: StreamAdapter, message: str) -> None:
        try:
            adapter.emit(ErrorEvent(message=message))
        except Exception as write_error:
            # The stream is being torn down regardless
            logger.warning(f"Could not deliver error event: {write_error}")


__all__ = [
    "AgentRelay",
    "RelayRequest",
    "build_mock_reply",
    "extract_user_text",
]
