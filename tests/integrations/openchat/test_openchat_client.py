from __future__ import annotations

import logging

import pytest

from openchat_bridge.integrations.openchat.client import (
    BotClient,
    BotClientFactory,
    ChatEventsCriteria,
)
from openchat_bridge.integrations.openchat.errors import (
    OpenChatPermanentError,
    OpenChatTransientError,
)
from openchat_bridge.integrations.openchat.models import (
    ChatActionScope,
    CommunityActionScope,
    CommunityIdentifier,
    GroupChatIdentifier,
    MessageEvent,
    Permissions,
)
from tests.fixtures.openchat_fakes import FakeTransport

SCOPE = ChatActionScope(GroupChatIdentifier("g1"))


def _client(transport: FakeTransport, **kwargs) -> BotClient:
    factory = BotClientFactory(transport, max_attempts=1)
    return factory.create_client_for_scope(SCOPE, "gw", **kwargs)


def test_text_message_response_shape() -> None:
    client = _client(FakeTransport(), thread=4)
    message = client.create_text_message("Thinking...", finalised=False)
    assert message.to_response() == {
        "content": {"kind": "text_content", "text": "Thinking..."},
        "finalised": False,
        "thread": 4,
    }
    assert message.set_finalised(True).finalised is True


def test_chat_id_is_none_for_community_scope() -> None:
    client = BotClientFactory(FakeTransport()).create_client_for_scope(
        CommunityActionScope(CommunityIdentifier("c")), "gw"
    )
    assert client.chat_id is None
    assert _client(FakeTransport()).chat_id == GroupChatIdentifier("g1")


@pytest.mark.anyio
async def test_send_message_success() -> None:
    transport = FakeTransport()
    transport.responses["bot_send_message_msgpack"] = {
        "kind": "success",
        "message_id": 12,
        "event_index": 40,
    }
    client = _client(transport)
    result = await client.send_message(client.create_text_message("hi"))

    assert result.kind == "success"
    assert result.message_id == 12
    assert result.event_index == 40
    _canister, _method, payload = transport.calls[0]
    assert payload["scope"] == {"chat": {"kind": "group_chat", "group_id": "g1"}}
    assert payload["finalised"] is True


@pytest.mark.anyio
async def test_send_message_without_text_permission_is_an_error() -> None:
    transport = FakeTransport()
    client = _client(transport, permissions=Permissions(message=0))
    result = await client.send_message(client.create_text_message("hi"))

    assert result.kind == "error"
    assert transport.calls == []


@pytest.mark.anyio
async def test_platform_error_response_becomes_error_result() -> None:
    transport = FakeTransport()
    transport.responses["bot_send_message_msgpack"] = {
        "kind": "error",
        "code": 7,
        "message": "not authorized",
    }
    client = _client(transport)
    result = await client.send_message(client.create_text_message("hi"))

    assert result.kind == "error"
    assert result.code == 7
    assert result.message == "not authorized"


@pytest.mark.anyio
async def test_transport_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    transport = FakeTransport()
    transport.responses["bot_chat_summary_msgpack"] = OpenChatPermanentError(
        "forbidden", status_code=403
    )
    caplog.set_level(logging.WARNING)

    result = await _client(transport).chat_summary()

    assert result.kind == "error"
    assert result.code == 403
    assert "openchat.client.call_failed" in caplog.text


@pytest.mark.anyio
async def test_transient_failures_are_retried() -> None:
    transport = FakeTransport()
    attempts: list[int] = []

    def flaky(payload):
        attempts.append(1)
        if len(attempts) < 2:
            raise OpenChatTransientError("busy", status_code=503)
        return {"kind": "success", "latest_event_index": 9}

    transport.responses["bot_chat_summary_msgpack"] = flaky
    client = BotClient(transport, scope=SCOPE, api_gateway="gw", max_attempts=2)
    result = await client.chat_summary()

    assert result.kind == "success"
    assert result.latest_event_index == 9
    assert len(attempts) == 2


@pytest.mark.anyio
async def test_chat_events_skips_unparsable_entries(caplog: pytest.LogCaptureFixture) -> None:
    transport = FakeTransport()
    transport.responses["bot_chat_events_msgpack"] = {
        "kind": "success",
        "latest_event_index": 12,
        "events": [
            {
                "index": 10,
                "timestamp": 1_700_000_000_000,
                "event": {
                    "kind": "message",
                    "message_id": 1,
                    "sender": "u1",
                    "content": {"kind": "text_content", "text": "hello"},
                },
            },
            {"index": 11, "event": {"kind": "message", "message_id": "bad"}},
            "junk",
        ],
    }
    caplog.set_level(logging.WARNING)
    criteria = ChatEventsCriteria(start_event_index=2, max_events=10, max_messages=10)

    result = await _client(transport).chat_events(criteria, thread=None)

    assert result.kind == "success"
    assert result.latest_event_index == 12
    assert [wrapper.index for wrapper in result.events] == [10]
    assert isinstance(result.events[0].event, MessageEvent)
    assert result.events[0].timestamp == 1_700_000_000_000
    assert "openchat.client.event_skipped" in caplog.text
    _canister, method, payload = transport.calls[0]
    assert method == "bot_chat_events_msgpack"
    assert payload["events"]["start_event_index"] == 2


@pytest.mark.anyio
async def test_add_reaction_and_delete_messages() -> None:
    transport = FakeTransport()
    client = _client(transport)

    reacted = await client.add_reaction(77, "🎉", thread=3)
    deleted = await client.delete_messages((5, 6))

    assert reacted.kind == "success"
    assert deleted.kind == "success"
    (_c1, react_method, react_payload), (_c2, delete_method, delete_payload) = transport.calls
    assert react_method == "bot_add_reaction_msgpack"
    assert react_payload["message_id"] == 77
    assert react_payload["reaction"] == "🎉"
    assert react_payload["thread"] == 3
    assert delete_method == "bot_delete_messages_msgpack"
    assert delete_payload["message_ids"] == [5, 6]


@pytest.mark.anyio
async def test_delete_messages_error_response() -> None:
    transport = FakeTransport()
    transport.responses["bot_delete_messages_msgpack"] = {
        "kind": "error",
        "message": "not yours",
    }
    result = await _client(transport).delete_messages([1])
    assert result.kind == "error"
    assert result.message == "not yours"
