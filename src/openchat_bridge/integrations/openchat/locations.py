"""Location keys, scopes and message metadata derived from platform identifiers."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from .models import (
    ActionScope,
    ChannelIdentifier,
    ChatActionScope,
    ChatIdentifier,
    CommunityActionScope,
    CommunityIdentifier,
    DirectChatIdentifier,
    GroupChatIdentifier,
    Installation,
    InstallationLocation,
    MessageMetadata,
    metadata_fields,
)

CHAT_KIND_DIRECT = "direct"
CHAT_KIND_GROUP = "group"
CHAT_KIND_CHANNEL = "channel"


def location_key(location: InstallationLocation) -> str:
    """Canonical registry key; variants carry distinct prefixes so keys never collide."""
    if isinstance(location, CommunityIdentifier):
        return f"community:{location.community_id}"
    if isinstance(location, GroupChatIdentifier):
        return f"group:{location.group_id}"
    if isinstance(location, DirectChatIdentifier):
        return f"direct:{location.user_id}"
    raise TypeError(f"Unsupported installation location: {location!r}")


def scope_from_location(location: InstallationLocation) -> ActionScope:
    if isinstance(location, CommunityIdentifier):
        return CommunityActionScope(location)
    return ChatActionScope(location)


def chat_identifier_to_installation_location(
    chat_id: ChatIdentifier,
) -> InstallationLocation:
    if isinstance(chat_id, ChannelIdentifier):
        return CommunityIdentifier(chat_id.community_id)
    return chat_id


def chat_kind_for_chat(chat_id: ChatIdentifier) -> str:
    if isinstance(chat_id, DirectChatIdentifier):
        return CHAT_KIND_DIRECT
    if isinstance(chat_id, GroupChatIdentifier):
        return CHAT_KIND_GROUP
    return CHAT_KIND_CHANNEL


def chat_kind_for_location(location: InstallationLocation) -> str:
    if isinstance(location, DirectChatIdentifier):
        return CHAT_KIND_DIRECT
    if isinstance(location, GroupChatIdentifier):
        return CHAT_KIND_GROUP
    return CHAT_KIND_CHANNEL


def describe_chat(chat_id: ChatIdentifier) -> str:
    if isinstance(chat_id, ChannelIdentifier):
        return f"{chat_id.community_id}-{chat_id.channel_id}"
    if isinstance(chat_id, GroupChatIdentifier):
        return chat_id.group_id
    return chat_id.user_id


def describe_location(location: InstallationLocation) -> str:
    if isinstance(location, CommunityIdentifier):
        return location.community_id
    if isinstance(location, GroupChatIdentifier):
        return location.group_id
    return location.user_id


def room_key(base: str, thread: Optional[int] = None) -> str:
    return f"{base}:{thread}" if thread is not None else base


def build_message_metadata(
    chat_id: ChatIdentifier,
    message_id: object,
    api_gateway: str,
    thread: Optional[int] = None,
) -> MessageMetadata:
    base = describe_chat(chat_id)
    return MessageMetadata(
        chat_kind=chat_kind_for_chat(chat_id),
        chat_id=base,
        location_key=location_key(chat_identifier_to_installation_location(chat_id)),
        room_key=room_key(base, thread),
        message_id=str(message_id),
        thread_id=thread,
        api_gateway=api_gateway,
    )


def build_metadata_from_installation(
    key: str,
    installation: Installation,
    overrides: Optional[Mapping[str, Any]] = None,
) -> MessageMetadata:
    """Synthesize metadata for an installation; `overrides` may set the thread,
    message id, reply target and gateway."""
    explicit = metadata_fields(overrides)
    thread = explicit.get("thread_id")
    base = describe_location(installation.location)
    return MessageMetadata(
        chat_kind=chat_kind_for_location(installation.location),
        chat_id=base,
        location_key=key,
        room_key=room_key(base, thread),
        message_id=str(explicit.get("message_id", "")),
        thread_id=thread,
        reply_to_message_id=explicit.get("reply_to_message_id"),
        api_gateway=explicit.get("api_gateway") or installation.record.api_gateway,
    )


def location_to_wire(location: InstallationLocation) -> dict[str, Any]:
    if isinstance(location, CommunityIdentifier):
        return {"kind": location.kind, "community_id": location.community_id}
    if isinstance(location, GroupChatIdentifier):
        return {"kind": location.kind, "group_id": location.group_id}
    return {"kind": location.kind, "user_id": location.user_id}


def chat_to_wire(chat_id: ChatIdentifier) -> dict[str, Any]:
    if isinstance(chat_id, ChannelIdentifier):
        return {
            "kind": chat_id.kind,
            "community_id": chat_id.community_id,
            "channel_id": chat_id.channel_id,
        }
    return location_to_wire(chat_id)


def scope_to_wire(scope: ActionScope) -> dict[str, Any]:
    if isinstance(scope, CommunityActionScope):
        return {"community": location_to_wire(scope.community)}
    return {"chat": chat_to_wire(scope.chat)}
