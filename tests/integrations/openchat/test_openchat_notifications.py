from __future__ import annotations

from typing import Any

import pytest

from openchat_bridge.integrations.openchat.client import BotClient, BotClientFactory
from openchat_bridge.integrations.openchat.errors import NotificationPayloadError
from openchat_bridge.integrations.openchat.events import parse_bot_event
from openchat_bridge.integrations.openchat.models import (
    BotChatEvent,
    BotCommunityEvent,
    BotInstalledEvent,
    ChatActionScope,
    CommunityActionScope,
    GroupChatIdentifier,
    MemberJoinedEvent,
    MessageEvent,
    OtherChatEvent,
    UnknownBotEvent,
)
from openchat_bridge.integrations.openchat.notifications import (
    NotificationRejection,
    PassthroughVerifier,
    handle_notification,
)
from openchat_bridge.integrations.openchat.principal import principal_to_text
from tests.fixtures.openchat_fakes import (
    API_GATEWAY,
    FakeTransport,
    chat_notification,
    installed_notification,
    pack,
    principal,
    text_message_event,
)


class _Recorder:
    def __init__(self) -> None:
        self.events: list[tuple[BotClient, Any, str]] = []
        self.rejections: list[NotificationRejection] = []

    async def on_event(self, client: BotClient, event: Any, api_gateway: str) -> None:
        self.events.append((client, event, api_gateway))

    def on_rejected(self, rejection: NotificationRejection) -> None:
        self.rejections.append(rejection)


def test_parse_installed_event_decodes_principals_and_permissions() -> None:
    raw = {
        "kind": "bot_installed_event",
        "api_gateway": API_GATEWAY,
        "location": {"kind": "group_chat", "group_id": b"\x01\x02"},
        "installed_by": [3, 4],
        "granted_autonomous_permissions": {"chat": 0, "community": 0, "message": 31},
    }
    event, gateway = parse_bot_event(raw)

    assert gateway == API_GATEWAY
    assert isinstance(event, BotInstalledEvent)
    assert isinstance(event.location, GroupChatIdentifier)
    assert event.location.group_id == principal_to_text(b"\x01\x02")
    assert event.installed_by == principal_to_text(b"\x03\x04")
    assert event.granted_autonomous_permissions.message == 31


def test_parse_message_event_reads_reply_and_bot_sender() -> None:
    raw = {
        "kind": "bot_chat_event",
        "api_gateway": API_GATEWAY,
        "chat_id": {"kind": "channel", "community_id": "c1", "channel_id": 4},
        "thread": 12,
        "event": {
            "kind": "message",
            "message_id": 5,
            "sender": "user-1",
            "content": {"kind": "poll_content", "config": {"options": ["a", "b", "c"]}},
            "replies_to": {"event_index": 3},
            "sender_context": {"kind": "bot"},
        },
    }
    event, _gateway = parse_bot_event(raw)

    assert isinstance(event, BotChatEvent)
    assert event.thread == 12
    message = event.event
    assert isinstance(message, MessageEvent)
    assert message.replies_to == 3
    assert message.sender_is_bot is True
    assert message.content.option_count == 3


def test_parse_other_chat_event_and_unknown_kinds() -> None:
    raw = {
        "kind": "bot_chat_event",
        "api_gateway": API_GATEWAY,
        "chat_id": {"kind": "group_chat", "group_id": "g"},
        "event": {"kind": "members_left", "user_ids": ["u"]},
    }
    event, _ = parse_bot_event(raw)
    assert isinstance(event, BotChatEvent)
    assert isinstance(event.event, OtherChatEvent)
    assert event.event.kind == "members_left"

    unknown, _ = parse_bot_event({"kind": "something_new", "api_gateway": API_GATEWAY})
    assert isinstance(unknown, UnknownBotEvent)


@pytest.mark.parametrize(
    "raw",
    [
        "not a map",
        {"kind": "bot_installed_event"},
        {"kind": "bot_installed_event", "api_gateway": "gw", "location": {"kind": "planet"}},
        {
            "kind": "bot_chat_event",
            "api_gateway": "gw",
            "chat_id": {"kind": "group_chat", "group_id": "g"},
            "event": {"kind": "message", "message_id": "x", "sender": "u", "content": {}},
        },
    ],
)
def test_parse_bot_event_rejects_malformed_payloads(raw: Any) -> None:
    with pytest.raises(NotificationPayloadError):
        parse_bot_event(raw)


def test_passthrough_verifier_requires_signature() -> None:
    PassthroughVerifier().verify("sig", b"")
    with pytest.raises(NotificationPayloadError):
        PassthroughVerifier().verify("  ", b"")


@pytest.mark.anyio
async def test_handle_notification_builds_scoped_client() -> None:
    recorder = _Recorder()
    factory = BotClientFactory(FakeTransport())
    body = chat_notification(
        {"kind": "group_chat", "group_id": "g1"},
        text_message_event("hi", sender=principal(1)),
        thread=8,
    )

    await handle_notification("sig", body, factory, recorder.on_event, recorder.on_rejected)

    assert recorder.rejections == []
    client, event, gateway = recorder.events[0]
    assert gateway == API_GATEWAY
    assert isinstance(event, BotChatEvent)
    assert client.scope == ChatActionScope(GroupChatIdentifier("g1"))
    assert client.thread == 8
    assert client.api_gateway == API_GATEWAY


@pytest.mark.anyio
async def test_handle_notification_community_event_uses_community_scope() -> None:
    recorder = _Recorder()
    factory = BotClientFactory(FakeTransport())
    body = pack(
        {
            "kind": "bot_community_event",
            "api_gateway": API_GATEWAY,
            "community_id": "c1",
            "event": {"kind": "member_joined"},
        }
    )

    await handle_notification("sig", body, factory, recorder.on_event, recorder.on_rejected)

    client, event, _ = recorder.events[0]
    assert isinstance(event, BotCommunityEvent)
    assert isinstance(client.scope, CommunityActionScope)


@pytest.mark.anyio
async def test_handle_notification_rejects_undecodable_body() -> None:
    recorder = _Recorder()
    factory = BotClientFactory(FakeTransport())

    await handle_notification(
        "sig", b"\xc1 definitely not msgpack", factory, recorder.on_event, recorder.on_rejected
    )

    assert recorder.events == []
    assert isinstance(recorder.rejections[0].error, NotificationPayloadError)


@pytest.mark.anyio
async def test_handle_notification_without_scope_is_invalid_scope() -> None:
    recorder = _Recorder()
    factory = BotClientFactory(FakeTransport())
    body = pack({"kind": "future_event", "api_gateway": API_GATEWAY})

    await handle_notification("sig", body, factory, recorder.on_event, recorder.on_rejected)

    assert recorder.events == []
    assert recorder.rejections == [NotificationRejection("Invalid scope")]


@pytest.mark.anyio
async def test_handle_notification_missing_signature_is_rejected() -> None:
    recorder = _Recorder()
    factory = BotClientFactory(FakeTransport())
    body = installed_notification({"kind": "group_chat", "group_id": "g"})

    await handle_notification("", body, factory, recorder.on_event, recorder.on_rejected)

    assert recorder.events == []
    assert len(recorder.rejections) == 1


@pytest.mark.anyio
async def test_handle_notification_awaits_async_rejection_callback() -> None:
    seen: list[NotificationRejection] = []

    async def _on_rejected(rejection: NotificationRejection) -> None:
        seen.append(rejection)

    async def _on_event(*_args: Any) -> None:
        raise AssertionError("should not dispatch")

    factory = BotClientFactory(FakeTransport())
    body = pack({"kind": "future_event", "api_gateway": API_GATEWAY})
    await handle_notification("sig", body, factory, _on_event, _on_rejected)

    assert seen == [NotificationRejection("Invalid scope")]


def test_member_joined_event_parses_user() -> None:
    raw = {
        "kind": "bot_chat_event",
        "api_gateway": API_GATEWAY,
        "chat_id": {"kind": "group_chat", "group_id": "g"},
        "event": {"kind": "member_joined", "user_id": principal(2)},
    }
    event, _ = parse_bot_event(raw)
    assert isinstance(event, BotChatEvent)
    assert event.event == MemberJoinedEvent(user_id=principal(2))
