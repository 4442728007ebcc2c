"""Decode msgpack-shaped notification payloads into typed bot events."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .errors import InvalidPrincipalError, NotificationPayloadError
from .models import (
    BotChatEvent,
    BotCommunityEvent,
    BotEvent,
    BotInstalledEvent,
    BotUninstalledEvent,
    ChannelIdentifier,
    ChatEventPayload,
    ChatIdentifier,
    CommunityIdentifier,
    DirectChatIdentifier,
    GroupChatIdentifier,
    InstallationLocation,
    MemberJoinedEvent,
    MessageContent,
    MessageEvent,
    OtherChatEvent,
    Permissions,
    UnknownBotEvent,
)
from .principal import decode_principal


def _require_mapping(raw: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        raise NotificationPayloadError(f"{what} must be a map")
    return raw


def _principal(raw: Mapping[str, Any], key: str, what: str) -> str:
    value = raw.get(key)
    if value is None or value == "":
        raise NotificationPayloadError(f"{what} is missing {key}")
    try:
        return decode_principal(value)
    except InvalidPrincipalError as exc:
        raise NotificationPayloadError(f"{what}.{key} is not a principal") from exc


def _optional_principal(raw: Mapping[str, Any], key: str) -> Optional[str]:
    value = raw.get(key)
    if value is None or value == "":
        return None
    try:
        return decode_principal(value)
    except InvalidPrincipalError:
        return None


def _int(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise NotificationPayloadError(f"{what} must be an integer")
    return value


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def parse_location(raw: Any) -> InstallationLocation:
    data = _require_mapping(raw, "location")
    kind = data.get("kind")
    if kind == CommunityIdentifier.kind:
        return CommunityIdentifier(_principal(data, "community_id", "location"))
    if kind == GroupChatIdentifier.kind:
        return GroupChatIdentifier(_principal(data, "group_id", "location"))
    if kind == DirectChatIdentifier.kind:
        return DirectChatIdentifier(_principal(data, "user_id", "location"))
    raise NotificationPayloadError(f"unknown location kind {kind!r}")


def parse_chat_identifier(raw: Any) -> ChatIdentifier:
    data = _require_mapping(raw, "chat_id")
    kind = data.get("kind")
    if kind == ChannelIdentifier.kind:
        return ChannelIdentifier(
            community_id=_principal(data, "community_id", "chat_id"),
            channel_id=_int(data.get("channel_id"), "chat_id.channel_id"),
        )
    if kind == GroupChatIdentifier.kind:
        return GroupChatIdentifier(_principal(data, "group_id", "chat_id"))
    if kind == DirectChatIdentifier.kind:
        return DirectChatIdentifier(_principal(data, "user_id", "chat_id"))
    raise NotificationPayloadError(f"unknown chat kind {kind!r}")


def parse_content(raw: Any) -> MessageContent:
    data = _require_mapping(raw, "content")
    kind = str(data.get("kind") or "unknown_content")
    options = data.get("options")
    if options is None and isinstance(data.get("config"), Mapping):
        options = data["config"].get("options")
    return MessageContent(
        kind=kind,
        text=data.get("text") if isinstance(data.get("text"), str) else None,
        caption=data.get("caption") if isinstance(data.get("caption"), str) else None,
        name=data.get("name") if isinstance(data.get("name"), str) else None,
        option_count=len(options) if isinstance(options, (list, tuple)) else 0,
    )


def parse_chat_event(raw: Any) -> ChatEventPayload:
    data = _require_mapping(raw, "event")
    kind = data.get("kind")
    if kind == MessageEvent.kind:
        replies_to = data.get("replies_to")
        if isinstance(replies_to, Mapping):
            replies_to = replies_to.get("event_index")
        sender_context = data.get("sender_context")
        sender_is_bot = isinstance(sender_context, Mapping) and sender_context.get("kind") == "bot"
        return MessageEvent(
            message_id=_int(data.get("message_id"), "event.message_id"),
            message_index=_optional_int(data.get("message_index")) or 0,
            sender=_principal(data, "sender", "event"),
            content=parse_content(data.get("content")),
            replies_to=_optional_int(replies_to),
            deleted=bool(data.get("deleted", False)),
            sender_is_bot=sender_is_bot,
        )
    if kind == MemberJoinedEvent.kind:
        return MemberJoinedEvent(
            user_id=_principal(data, "user_id", "event"),
            invited_by=_optional_principal(data, "invited_by"),
        )
    if not isinstance(kind, str) or not kind:
        raise NotificationPayloadError("chat event has no kind")
    return OtherChatEvent(kind=kind, data=dict(data))


def parse_bot_event(raw: Any) -> tuple[BotEvent, str]:
    """Return the typed event and the API gateway it was delivered through."""
    data = _require_mapping(raw, "notification")
    api_gateway = data.get("api_gateway")
    if isinstance(api_gateway, (bytes, bytearray, list)):
        api_gateway = _optional_principal(data, "api_gateway")
    if not isinstance(api_gateway, str) or not api_gateway:
        raise NotificationPayloadError("notification is missing api_gateway")

    kind = data.get("kind")
    if kind == BotInstalledEvent.kind:
        event: BotEvent = BotInstalledEvent(
            location=parse_location(data.get("location")),
            installed_by=_optional_principal(data, "installed_by"),
            granted_command_permissions=Permissions.from_raw(
                data.get("granted_command_permissions")
            ),
            granted_autonomous_permissions=Permissions.from_raw(
                data.get("granted_autonomous_permissions")
            ),
        )
    elif kind == BotUninstalledEvent.kind:
        event = BotUninstalledEvent(
            location=parse_location(data.get("location")),
            uninstalled_by=_optional_principal(data, "uninstalled_by"),
        )
    elif kind == BotChatEvent.kind:
        event = BotChatEvent(
            chat_id=parse_chat_identifier(data.get("chat_id")),
            event=parse_chat_event(data.get("event")),
            event_index=_optional_int(data.get("event_index")) or 0,
            latest_event_index=_optional_int(data.get("latest_event_index")) or 0,
            thread=_optional_int(data.get("thread")),
        )
    elif kind == BotCommunityEvent.kind:
        inner = data.get("event")
        inner_map = inner if isinstance(inner, Mapping) else {}
        event = BotCommunityEvent(
            community_id=CommunityIdentifier(_principal(data, "community_id", "notification")),
            event_kind=str(inner_map.get("kind") or "unknown"),
            data=dict(inner_map),
        )
    else:
        event = UnknownBotEvent(kind=str(kind or "unknown"), data=dict(data))
    return event, api_gateway
