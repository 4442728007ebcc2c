"""Deterministic identifiers for OpenChat entities.

The same platform entity always maps to the same runtime id, so nothing has to
be persisted to keep rooms, users and messages stable across restarts.
"""

from __future__ import annotations

import uuid

OPENCHAT_UUID_NAMESPACE = uuid.UUID("6ba7b810-9dad-11d1-80b4-00c04fd430c8")


def make_room_uuid(chat_kind: str, room_key: str) -> uuid.UUID:
    return uuid.uuid5(OPENCHAT_UUID_NAMESPACE, f"openchat-room-{chat_kind}-{room_key}")


def make_user_uuid(principal: str) -> uuid.UUID:
    return uuid.uuid5(OPENCHAT_UUID_NAMESPACE, f"openchat-user-{principal}")


def make_message_uuid(composite_key: str) -> uuid.UUID:
    """Message ids are scoped per chat: pass `"<chatId>-<messageId>"`."""
    return uuid.uuid5(OPENCHAT_UUID_NAMESPACE, f"openchat-message-{composite_key}")


def message_key(chat_id: str, message_id: object) -> str:
    return f"{chat_id}-{message_id}"


def make_random_uuid() -> uuid.UUID:
    """For entities with no stable platform input, such as one-off memories."""
    return uuid.uuid4()
