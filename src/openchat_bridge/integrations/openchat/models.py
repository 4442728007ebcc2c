"""Typed OpenChat platform entities and inbound bot events."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Optional, Union

from .constants import CHAT_PERMISSIONS, COMMUNITY_PERMISSIONS, MESSAGE_PERMISSIONS


@dataclass(frozen=True)
class CommunityIdentifier:
    community_id: str
    kind: ClassVar[str] = "community"


@dataclass(frozen=True)
class GroupChatIdentifier:
    group_id: str
    kind: ClassVar[str] = "group_chat"


@dataclass(frozen=True)
class DirectChatIdentifier:
    user_id: str
    kind: ClassVar[str] = "direct_chat"


@dataclass(frozen=True)
class ChannelIdentifier:
    community_id: str
    channel_id: int
    kind: ClassVar[str] = "channel"


InstallationLocation = Union[CommunityIdentifier, GroupChatIdentifier, DirectChatIdentifier]
ChatIdentifier = Union[GroupChatIdentifier, DirectChatIdentifier, ChannelIdentifier]


@dataclass(frozen=True)
class ChatActionScope:
    chat: ChatIdentifier
    kind: ClassVar[str] = "chat"

    def describe(self) -> str:
        chat = self.chat
        if isinstance(chat, ChannelIdentifier):
            return f"{chat.community_id}/{chat.channel_id}"
        if isinstance(chat, GroupChatIdentifier):
            return chat.group_id
        return chat.user_id


@dataclass(frozen=True)
class CommunityActionScope:
    community: CommunityIdentifier
    kind: ClassVar[str] = "community"

    def describe(self) -> str:
        return self.community.community_id


ActionScope = Union[ChatActionScope, CommunityActionScope]


def _has_bit(mask: int, names: tuple[str, ...], name: str) -> bool:
    try:
        index = names.index(name)
    except ValueError:
        return False
    return bool(mask & (1 << index))


def _encode(granted: tuple[str, ...], names: tuple[str, ...]) -> int:
    mask = 0
    for name in granted:
        if name not in names:
            raise ValueError(f"unknown permission {name!r}")
        mask |= 1 << names.index(name)
    return mask


@dataclass(frozen=True)
class Permissions:
    """Raw permission bitmasks; bit `i` grants the i-th name of each list."""

    chat: int = 0
    community: int = 0
    message: int = 0

    @classmethod
    def from_raw(cls, raw: Optional[Mapping[str, Any]]) -> "Permissions":
        if not isinstance(raw, Mapping):
            return cls()

        def _mask(key: str) -> int:
            value = raw.get(key)
            if isinstance(value, bool) or not isinstance(value, int):
                return 0
            return max(value, 0)

        return cls(chat=_mask("chat"), community=_mask("community"), message=_mask("message"))

    @classmethod
    def from_names(
        cls,
        *,
        chat: tuple[str, ...] = (),
        community: tuple[str, ...] = (),
        message: tuple[str, ...] = (),
    ) -> "Permissions":
        return cls(
            chat=_encode(chat, CHAT_PERMISSIONS),
            community=_encode(community, COMMUNITY_PERMISSIONS),
            message=_encode(message, MESSAGE_PERMISSIONS),
        )

    def has_chat_permission(self, name: str) -> bool:
        return _has_bit(self.chat, CHAT_PERMISSIONS, name)

    def has_community_permission(self, name: str) -> bool:
        return _has_bit(self.community, COMMUNITY_PERMISSIONS, name)

    def has_message_permission(self, name: str) -> bool:
        return _has_bit(self.message, MESSAGE_PERMISSIONS, name)

    def to_dict(self) -> dict[str, int]:
        return {"chat": self.chat, "community": self.community, "message": self.message}


@dataclass(frozen=True)
class InstallationRecord:
    api_gateway: str
    granted_command_permissions: Permissions = field(default_factory=Permissions)
    granted_autonomous_permissions: Permissions = field(default_factory=Permissions)


@dataclass(frozen=True)
class Installation:
    location: InstallationLocation
    scope: ActionScope
    record: InstallationRecord


_METADATA_FIELDS = (
    "chat_kind",
    "chat_id",
    "location_key",
    "room_key",
    "message_id",
    "thread_id",
    "reply_to_message_id",
    "api_gateway",
)


@dataclass(frozen=True)
class MessageMetadata:
    """Per-event routing metadata; never persisted beyond one event."""

    chat_kind: str
    chat_id: str
    location_key: str
    room_key: str
    message_id: str
    api_gateway: str
    thread_id: Optional[int] = None
    reply_to_message_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in _METADATA_FIELDS}


def metadata_fields(raw: Any) -> dict[str, Any]:
    """Return the recognised, non-empty metadata fields of a mapping or metadata."""
    if isinstance(raw, MessageMetadata):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        return {}
    fields: dict[str, Any] = {}
    for name in _METADATA_FIELDS:
        value = raw.get(name)
        if value is None or value == "":
            continue
        fields[name] = value
    return fields


@dataclass(frozen=True)
class MessageContent:
    kind: str
    text: Optional[str] = None
    caption: Optional[str] = None
    name: Optional[str] = None
    option_count: int = 0


@dataclass(frozen=True)
class MessageEvent:
    message_id: int
    message_index: int
    sender: str
    content: MessageContent
    replies_to: Optional[int] = None
    deleted: bool = False
    sender_is_bot: bool = False
    kind: ClassVar[str] = "message"


@dataclass(frozen=True)
class MemberJoinedEvent:
    user_id: str
    invited_by: Optional[str] = None
    kind: ClassVar[str] = "member_joined"


@dataclass(frozen=True)
class OtherChatEvent:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


ChatEventPayload = Union[MessageEvent, MemberJoinedEvent, OtherChatEvent]


@dataclass(frozen=True)
class BotInstalledEvent:
    location: InstallationLocation
    installed_by: Optional[str] = None
    granted_command_permissions: Permissions = field(default_factory=Permissions)
    granted_autonomous_permissions: Permissions = field(default_factory=Permissions)
    kind: ClassVar[str] = "bot_installed_event"


@dataclass(frozen=True)
class BotUninstalledEvent:
    location: InstallationLocation
    uninstalled_by: Optional[str] = None
    kind: ClassVar[str] = "bot_uninstalled_event"


@dataclass(frozen=True)
class BotChatEvent:
    chat_id: ChatIdentifier
    event: ChatEventPayload
    event_index: int = 0
    latest_event_index: int = 0
    thread: Optional[int] = None
    kind: ClassVar[str] = "bot_chat_event"


@dataclass(frozen=True)
class BotCommunityEvent:
    community_id: CommunityIdentifier
    event_kind: str
    data: dict[str, Any] = field(default_factory=dict)
    kind: ClassVar[str] = "bot_community_event"


@dataclass(frozen=True)
class UnknownBotEvent:
    kind: str
    data: dict[str, Any] = field(default_factory=dict)


BotEvent = Union[
    BotInstalledEvent,
    BotUninstalledEvent,
    BotChatEvent,
    BotCommunityEvent,
    UnknownBotEvent,
]


@dataclass(frozen=True)
class UserProfile:
    user_id: str
    username: Optional[str] = None
    display_name: Optional[str] = None


@dataclass(frozen=True)
class CachedProfile:
    profile: UserProfile
    expires_at: float
