from __future__ import annotations

import uuid
from typing import Any, Callable, Optional, Union

import msgpack

from openchat_bridge.integrations.openchat.config import OpenChatBotConfig
from openchat_bridge.integrations.openchat.principal import principal_to_text
from openchat_bridge.integrations.openchat.runtime import (
    AgentMessage,
    Character,
    ResponseCallback,
    ResponseContent,
)
from openchat_bridge.integrations.openchat.transport import QueryResponse

API_GATEWAY = "gateway-canister"
STORAGE_INDEX = "storage-index"

TEST_ENV = {
    "OPENCHAT_BOT_IDENTITY_PRIVATE_KEY": "private-key",
    "OPENCHAT_PUBLIC_KEY": "public-key",
    "OPENCHAT_IC_HOST": "https://icp-api.io",
    "OPENCHAT_STORAGE_INDEX_CANISTER": STORAGE_INDEX,
}

CallResponse = Union[dict[str, Any], BaseException, Callable[[dict[str, Any]], dict[str, Any]]]


def principal(seed: int, length: int = 10) -> str:
    return principal_to_text(bytes([seed]) * length)


def pack(payload: Any) -> bytes:
    return msgpack.packb(payload, use_bin_type=True)


def bot_config(**overrides: Any) -> OpenChatBotConfig:
    values: dict[str, Any] = {
        "identity_private_key": "private-key",
        "openchat_public_key": "public-key",
        "ic_host": "https://icp-api.io",
        "storage_index_canister_id": STORAGE_INDEX,
        "transport_max_attempts": 1,
    }
    values.update(overrides)
    return OpenChatBotConfig(**values)


def installed_notification(
    location: dict[str, Any],
    *,
    message_mask: int = 0,
    chat_mask: int = 0,
    api_gateway: str = API_GATEWAY,
) -> bytes:
    return pack(
        {
            "kind": "bot_installed_event",
            "api_gateway": api_gateway,
            "location": location,
            "installed_by": principal(9),
            "granted_command_permissions": {"chat": 0, "community": 0, "message": 1},
            "granted_autonomous_permissions": {
                "chat": chat_mask,
                "community": 0,
                "message": message_mask,
            },
        }
    )


def uninstalled_notification(location: dict[str, Any]) -> bytes:
    return pack(
        {
            "kind": "bot_uninstalled_event",
            "api_gateway": API_GATEWAY,
            "location": location,
        }
    )


def chat_notification(
    chat_id: dict[str, Any],
    event: dict[str, Any],
    *,
    thread: Optional[int] = None,
    api_gateway: str = API_GATEWAY,
) -> bytes:
    payload: dict[str, Any] = {
        "kind": "bot_chat_event",
        "api_gateway": api_gateway,
        "chat_id": chat_id,
        "event": event,
        "event_index": 5,
        "latest_event_index": 5,
    }
    if thread is not None:
        payload["thread"] = thread
    return pack(payload)


def text_message_event(
    text: str,
    *,
    sender: str,
    message_id: int = 77,
    replies_to: Optional[int] = None,
    bot: bool = False,
    deleted: bool = False,
) -> dict[str, Any]:
    event: dict[str, Any] = {
        "kind": "message",
        "message_id": message_id,
        "message_index": 3,
        "sender": sender,
        "content": {"kind": "text_content", "text": text},
        "deleted": deleted,
    }
    if replies_to is not None:
        event["replies_to"] = {"event_index": replies_to}
    if bot:
        event["sender_context"] = {"kind": "bot"}
    return event


class FakeTransport:
    """Records bot API calls; responses are keyed by method name."""

    def __init__(self, host: str = "https://icp-api.io") -> None:
        self.host = host
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.queries: list[tuple[str, str, bytes]] = []
        self.responses: dict[str, CallResponse] = {}
        self.query_response: Union[QueryResponse, BaseException] = QueryResponse(
            status="replied", reply=pack({"Success": {"users": []}})
        )
        self.root_key_fetches = 0
        self.root_key_error: Optional[BaseException] = None
        self.closed = False
        self._next_message_id = 1000

    def sent_texts(self) -> list[str]:
        return [
            payload["content"]["text"]
            for _canister, method, payload in self.calls
            if method == "bot_send_message_msgpack"
        ]

    async def fetch_root_key(self) -> None:
        self.root_key_fetches += 1
        if self.root_key_error is not None:
            raise self.root_key_error

    async def query(self, canister_id: str, method: str, arg: bytes) -> QueryResponse:
        self.queries.append((canister_id, method, arg))
        if isinstance(self.query_response, BaseException):
            raise self.query_response
        return self.query_response

    async def call(
        self, canister_id: str, method: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        self.calls.append((canister_id, method, payload))
        response = self.responses.get(method)
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(payload)
        if response is not None:
            return response
        if method == "bot_send_message_msgpack":
            self._next_message_id += 1
            return {"kind": "success", "message_id": self._next_message_id, "event_index": 6}
        return {"kind": "success"}

    async def aclose(self) -> None:
        self.closed = True


class FakeRuntime:
    """Agent runtime double; replies with `reply_text` through the callback when set."""

    def __init__(
        self,
        *,
        name: str = "Ada",
        bio: tuple[str, ...] = ("A helpful research assistant.",),
        reply_text: Optional[str] = None,
        generated: Union[str, BaseException] = "",
    ) -> None:
        self.agent_id = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
        self.character = Character(
            name=name,
            bio=bio,
            topics=("math", "history"),
            style=("concise",),
        )
        self.reply_text = reply_text
        self.generated = generated
        self.prompts: list[str] = []
        self.handled: list[AgentMessage] = []
        self.responses: list[list[AgentMessage]] = []
        self.memories: list[AgentMessage] = []
        self.connections: list[dict[str, Any]] = []
        self.memory_error: Optional[BaseException] = None
        self.connection_error: Optional[BaseException] = None

    async def handle_message(self, message: AgentMessage, callback: ResponseCallback) -> None:
        self.handled.append(message)
        if self.reply_text is not None:
            self.responses.append(await callback(ResponseContent(text=self.reply_text)))

    async def generate_text(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.generated, BaseException):
            raise self.generated
        return self.generated

    async def create_memory(self, message: AgentMessage) -> None:
        if self.memory_error is not None:
            raise self.memory_error
        self.memories.append(message)

    async def ensure_connection(self, **kwargs: Any) -> None:
        if self.connection_error is not None:
            raise self.connection_error
        self.connections.append(kwargs)
