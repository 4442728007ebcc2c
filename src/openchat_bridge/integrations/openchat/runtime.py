"""Contract with the agent runtime the bridge feeds messages into."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

CHANNEL_TYPE_DM = "DM"
CHANNEL_TYPE_GROUP = "GROUP"

DEFAULT_BIO_LINE = "I'm here to help you with various tasks and conversations."


@dataclass(frozen=True)
class Character:
    name: str
    bio: tuple[str, ...] = ()
    topics: tuple[str, ...] = ()
    style: tuple[str, ...] = ()
    post_examples: tuple[str, ...] = ()

    def bio_line(self, default: str = DEFAULT_BIO_LINE) -> str:
        return self.bio[0] if self.bio else default


@dataclass(frozen=True)
class MentionContext:
    is_mention: bool = False
    is_reply: bool = False
    is_thread: bool = False
    mention_type: Optional[str] = None


@dataclass(frozen=True)
class ResponseContent:
    text: str
    attachments: tuple[Any, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentMessage:
    id: uuid.UUID
    entity_id: uuid.UUID
    room_id: uuid.UUID
    text: str
    channel_type: str
    source: str = "openchat"
    mention_context: MentionContext = field(default_factory=MentionContext)
    in_reply_to: Optional[uuid.UUID] = None
    metadata: dict[str, Any] = field(default_factory=dict)


ResponseCallback = Callable[[ResponseContent], Awaitable[list[AgentMessage]]]


class AgentRuntime(Protocol):
    agent_id: uuid.UUID
    character: Character

    async def handle_message(
        self, message: AgentMessage, callback: ResponseCallback
    ) -> None: ...

    async def generate_text(self, prompt: str) -> str: ...

    async def create_memory(self, message: AgentMessage) -> None: ...

    async def ensure_connection(
        self,
        *,
        entity_id: uuid.UUID,
        room_id: uuid.UUID,
        user_name: str,
        channel_id: str,
        channel_type: str,
    ) -> None: ...
