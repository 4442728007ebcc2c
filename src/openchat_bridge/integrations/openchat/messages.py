"""Turn platform messages into agent messages and send the agent's replies back."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

from ...core.logging_utils import log_event
from .client import BotClient
from .constants import OPENCHAT_SOURCE
from .ids import make_message_uuid, make_room_uuid, make_user_uuid, message_key
from .models import BotChatEvent, MessageContent, MessageEvent, MessageMetadata
from .runtime import (
    CHANNEL_TYPE_DM,
    CHANNEL_TYPE_GROUP,
    AgentMessage,
    AgentRuntime,
    MentionContext,
    ResponseCallback,
    ResponseContent,
)


class MessageHandler(Protocol):
    async def handle_message_event(
        self, client: BotClient, chat_event: BotChatEvent, metadata: MessageMetadata
    ) -> None: ...


def sanitize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return text.replace("\x00", "").strip()


def _with_caption(prefix: str, caption: Optional[str]) -> str:
    return f"{prefix}: {caption}" if caption else prefix


def placeholder_for_content(content: MessageContent) -> str:
    kind = content.kind
    if kind == "text_content":
        return sanitize_text(content.text)
    if kind == "image_content":
        return _with_caption("Received an image", content.caption)
    if kind == "video_content":
        return _with_caption("Received a video", content.caption)
    if kind == "audio_content":
        return _with_caption("Received an audio clip", content.caption)
    if kind == "file_content":
        return f"Received a file: {content.name or 'unnamed'}"
    if kind == "poll_content":
        return f"Received a poll with {content.option_count} options."
    return f"Received {kind.replace('_', ' ')}."


def channel_type_for(metadata: MessageMetadata) -> str:
    return CHANNEL_TYPE_DM if metadata.chat_kind == "direct" else CHANNEL_TYPE_GROUP


def create_response_callback(
    runtime: AgentRuntime,
    client: BotClient,
    *,
    room_id: uuid.UUID,
    metadata: MessageMetadata,
    incoming_message_id: uuid.UUID,
    channel_type: str,
    logger: logging.Logger,
) -> ResponseCallback:
    """Callback the runtime uses to answer: send, then persist the response."""

    async def _respond(content: ResponseContent) -> list[AgentMessage]:
        text = sanitize_text(content.text)
        if not text:
            return []
        if content.attachments:
            log_event(
                logger,
                logging.WARNING,
                "openchat.response.attachments_unsupported",
                count=len(content.attachments),
            )

        result = await client.send_message(client.create_text_message(text))
        if result.kind != "success":
            log_event(
                logger,
                logging.ERROR,
                "openchat.response.send_failed",
                chat_id=metadata.chat_id,
                error=getattr(result, "message", None),
            )
            return []

        response_message_id = str(result.message_id)
        response_metadata = metadata.to_dict()
        response_metadata["message_id"] = response_message_id
        memory = AgentMessage(
            id=make_message_uuid(message_key(metadata.chat_id, response_message_id)),
            entity_id=runtime.agent_id,
            room_id=room_id,
            text=text,
            channel_type=channel_type,
            in_reply_to=incoming_message_id,
            metadata={
                "type": "message",
                "source": OPENCHAT_SOURCE,
                "scope": "room",
                "openchat": response_metadata,
            },
        )
        try:
            await runtime.create_memory(memory)
        except Exception as exc:
            log_event(
                logger,
                logging.ERROR,
                "openchat.response.persist_failed",
                chat_id=metadata.chat_id,
                exc=exc,
            )
        return [memory]

    return _respond


class MessageManager:
    def __init__(self, runtime: AgentRuntime, *, logger: Optional[logging.Logger] = None) -> None:
        self._runtime = runtime
        self._logger = logger or logging.getLogger(__name__)

    def contains_bot_mention(self, text: str) -> bool:
        name = self._runtime.character.name if self._runtime.character else ""
        if not name or not text:
            return False
        return f"@{name}".lower() in text.lower()

    def build_agent_message(
        self, event: MessageEvent, metadata: MessageMetadata
    ) -> Optional[AgentMessage]:
        text = placeholder_for_content(event.content)
        if not text:
            return None
        thread_id = metadata.thread_id
        mention_type: Optional[str] = None
        if event.replies_to is not None:
            mention_type = "reply"
        elif thread_id:
            mention_type = "thread"
        in_reply_to = (
            make_message_uuid(message_key(metadata.chat_id, event.replies_to))
            if event.replies_to is not None
            else None
        )
        openchat_metadata = metadata.to_dict()
        openchat_metadata["sender"] = event.sender
        return AgentMessage(
            id=make_message_uuid(message_key(metadata.chat_id, metadata.message_id)),
            entity_id=make_user_uuid(event.sender),
            room_id=make_room_uuid(metadata.chat_kind, metadata.room_key),
            text=text,
            channel_type=channel_type_for(metadata),
            mention_context=MentionContext(
                is_mention=self.contains_bot_mention(text),
                is_reply=event.replies_to is not None,
                is_thread=bool(thread_id),
                mention_type=mention_type,
            ),
            in_reply_to=in_reply_to,
            metadata={
                "type": "message",
                "source": OPENCHAT_SOURCE,
                "scope": "room",
                "openchat": openchat_metadata,
            },
        )

    async def handle_message_event(
        self, client: BotClient, chat_event: BotChatEvent, metadata: MessageMetadata
    ) -> None:
        event = chat_event.event
        if not isinstance(event, MessageEvent):
            return
        if event.deleted or event.sender_is_bot:
            return

        message = self.build_agent_message(event, metadata)
        if message is None:
            log_event(
                self._logger,
                logging.DEBUG,
                "openchat.message.empty_skipped",
                chat_id=metadata.chat_id,
                message_id=metadata.message_id,
            )
            return

        try:
            await self._runtime.ensure_connection(
                entity_id=message.entity_id,
                room_id=message.room_id,
                user_name=event.sender,
                channel_id=metadata.chat_id,
                channel_type=message.channel_type,
            )
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.message.ensure_connection_failed",
                chat_id=metadata.chat_id,
                exc=exc,
            )

        callback = create_response_callback(
            self._runtime,
            client,
            room_id=message.room_id,
            metadata=metadata,
            incoming_message_id=message.id,
            channel_type=message.channel_type,
            logger=self._logger,
        )
        await self._runtime.handle_message(message, callback)
