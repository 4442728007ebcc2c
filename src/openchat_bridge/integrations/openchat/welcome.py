"""Welcome text for installs and newly joined members."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .models import (
    ChannelIdentifier,
    ChatIdentifier,
    DirectChatIdentifier,
    GroupChatIdentifier,
    UserProfile,
)
from .runtime import Character

SHORT_LABEL_MAX_CHARS = 11


@dataclass(frozen=True)
class MemberDescriptor:
    descriptor: str
    short_label: str
    mention: str


def mention_token(user_id: str) -> str:
    return f"@UserId({user_id})"


def short_label(user_id: str) -> str:
    if len(user_id) <= SHORT_LABEL_MAX_CHARS:
        return user_id
    return f"{user_id[:5]}...{user_id[-4:]}"


def describe_user(profile: Optional[UserProfile], user_id: str) -> MemberDescriptor:
    mention = mention_token(user_id)
    username = (profile.username or "").strip() if profile else ""
    display_name = (profile.display_name or "").strip() if profile else ""
    handle = f"@{username}" if username else ""
    if display_name and handle:
        return MemberDescriptor(f"{display_name} ({handle})", display_name, mention)
    if display_name:
        return MemberDescriptor(display_name, display_name, mention)
    if handle:
        return MemberDescriptor(handle, handle, mention)
    label = short_label(user_id)
    return MemberDescriptor(label, label, mention)


def describe_room(chat_id: ChatIdentifier) -> str:
    if isinstance(chat_id, GroupChatIdentifier):
        return f"group {chat_id.group_id}"
    if isinstance(chat_id, DirectChatIdentifier):
        return "this space"
    if isinstance(chat_id, ChannelIdentifier):
        return f"channel {chat_id.channel_id}"
    return "the room"


def member_welcome_prompt(character: Character, member: MemberDescriptor, room: str) -> str:
    return (
        f"You are {character.name}.\n"
        f"Craft a warm human welcome for {member.descriptor} who just joined {room}.\n"
        "Keep it <=2 sentences, weave in one starter question, and avoid AI disclaimers."
    )


def fallback_member_welcome(member: MemberDescriptor) -> str:
    return f"Welcome to the chat, {member.short_label}! 👋"


def ensure_mention(text: str, mention: str) -> str:
    if mention in text:
        return text
    return f"{mention} {text}".strip()


def install_welcome_text(character: Character) -> str:
    return (
        f"👋 Hello! I'm {character.name}, your AI assistant.\n\n"
        f"{character.bio_line()}\n\n"
        "Use `/help` to see available commands or `/chat <message>` to start chatting with me!"
    )
