"""Slash-command handling (`/chat`, `/help`, `/info`) over a command-scoped client."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol

from ...core.logging_utils import log_event
from .client import BotClient
from .ids import make_message_uuid, make_room_uuid, make_user_uuid, message_key
from .locations import build_message_metadata
from .messages import channel_type_for, create_response_callback
from .models import ChatIdentifier
from .registry import InstallationRegistry
from .runtime import AgentMessage, AgentRuntime, MentionContext

COMMAND_NOT_FOUND = "command_not_found"
DEFAULT_INITIATOR = "OpenChat User"
GENERATION_FAILED_TEXT = "I'm having trouble generating a response. Please try again."

FollowUp = Callable[[], Awaitable[None]]


@dataclass(frozen=True)
class CommandInvocation:
    """A verified command: name, arguments and the client scoped to its chat."""

    command_name: str
    client: BotClient
    args: dict[str, Any] = field(default_factory=dict)
    chat_id: Optional[ChatIdentifier] = None
    message_id: Optional[int] = None
    thread: Optional[int] = None
    initiator: Optional[str] = None

    def string_arg(self, name: str) -> Optional[str]:
        value = self.args.get(name)
        return value if isinstance(value, str) else None


class CommandClientFactory(Protocol):
    def create_client_from_jwt(self, jwt: str) -> CommandInvocation: ...


@dataclass(frozen=True)
class CommandOutcome:
    status_code: int
    body: dict[str, Any]
    follow_up: Optional[FollowUp] = None


class CommandHandler:
    def __init__(
        self,
        runtime: AgentRuntime,
        registry: InstallationRegistry,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._runtime = runtime
        self._registry = registry
        self._logger = logger or logging.getLogger(__name__)

    async def execute(self, invocation: CommandInvocation) -> CommandOutcome:
        name = invocation.command_name
        log_event(self._logger, logging.DEBUG, "openchat.command.received", command=name)
        if name == "chat":
            placeholder = invocation.client.create_text_message("Thinking...", finalised=False)
            return CommandOutcome(
                status_code=200,
                body={"message": placeholder.to_response()},
                follow_up=lambda: self._run_chat(invocation),
            )
        if name == "help":
            return await self._reply(invocation, self.help_text())
        if name == "info":
            return await self._reply(invocation, self.info_text())
        return CommandOutcome(status_code=400, body={"error": COMMAND_NOT_FOUND})

    def help_text(self) -> str:
        character = self._runtime.character
        return (
            f"🤖 **{character.name}** - AI Agent\n\n"
            "**Available Commands:**\n"
            "• `/chat <message>` - Chat with me\n"
            "• `/help` - Show this help message\n"
            "• `/info` - Get information about me\n\n"
            "**About Me:**\n"
            f"{character.bio_line('I am an AI agent.')}\n\n"
            "**How to Use:**\n"
            "Simply use the /chat command followed by your message, or send me a direct message!"
        )

    def info_text(self) -> str:
        character = self._runtime.character
        topics = ", ".join(character.topics[:5]) or "various topics"
        style = character.style[0] if character.style else "friendly and helpful"
        return (
            f"📋 **About {character.name}**\n\n"
            f"{character.bio_line('I am an AI agent.')}\n\n"
            f"**Topics I can discuss:** {topics}\n\n"
            f"**Communication style:** {style}"
        )

    async def _reply(self, invocation: CommandInvocation, text: str) -> CommandOutcome:
        client = invocation.client
        message = client.create_text_message(text)

        async def _send() -> None:
            result = await client.send_message(message)
            if result.kind != "success":
                log_event(
                    self._logger,
                    logging.WARNING,
                    "openchat.command.send_failed",
                    command=invocation.command_name,
                    error=getattr(result, "message", None),
                )

        return CommandOutcome(
            status_code=200,
            body={"message": message.to_response()},
            follow_up=_send,
        )

    async def _run_chat(self, invocation: CommandInvocation) -> None:
        client = invocation.client
        text = invocation.string_arg("message")
        if text is None:
            await client.send_message(client.create_text_message("Please provide a message."))
            return

        chat_id = invocation.chat_id or client.chat_id
        if chat_id is None:
            log_event(self._logger, logging.WARNING, "openchat.command.chat_id_missing")
            await self._send_fallback(client, text)
            return
        installation = self._registry.get_by_chat_id(chat_id)
        if installation is None:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.command.installation_missing",
                chat_kind=chat_id.kind,
            )
            await self._send_fallback(client, text)
            return

        message_id = invocation.message_id if invocation.message_id is not None else 0
        metadata = build_message_metadata(
            chat_id, message_id, installation.record.api_gateway, invocation.thread
        )
        initiator = invocation.initiator or DEFAULT_INITIATOR
        room_id = make_room_uuid(metadata.chat_kind, metadata.room_key)
        channel_type = channel_type_for(metadata)
        openchat_metadata = metadata.to_dict()
        openchat_metadata["sender"] = initiator
        message = AgentMessage(
            id=make_message_uuid(message_key(metadata.chat_id, metadata.message_id)),
            entity_id=make_user_uuid(initiator),
            room_id=room_id,
            text=text,
            channel_type=channel_type,
            mention_context=MentionContext(
                is_reply=metadata.thread_id is not None,
                is_thread=metadata.thread_id is not None,
                mention_type="thread" if metadata.thread_id is not None else None,
            ),
            metadata={
                "type": "message",
                "source": "openchat",
                "scope": "room",
                "openchat": openchat_metadata,
            },
        )
        try:
            await self._runtime.ensure_connection(
                entity_id=message.entity_id,
                room_id=room_id,
                user_name=initiator,
                channel_id=metadata.chat_id,
                channel_type=channel_type,
            )
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.command.ensure_connection_failed",
                exc=exc,
            )

        callback = create_response_callback(
            self._runtime,
            client,
            room_id=room_id,
            metadata=metadata,
            incoming_message_id=message.id,
            channel_type=channel_type,
            logger=self._logger,
        )
        try:
            await self._runtime.handle_message(message, callback)
        except Exception as exc:
            log_event(self._logger, logging.ERROR, "openchat.command.chat_failed", exc=exc)
            await self._send_fallback(client, text)

    async def _send_fallback(self, client: BotClient, text: str) -> None:
        character = self._runtime.character
        prompt = (
            f"You are {character.name}. {character.bio_line('')}\n\n"
            f"User: {text}\n\n{character.name}:"
        )
        try:
            reply = (await self._runtime.generate_text(prompt)).strip()
        except Exception as exc:
            log_event(self._logger, logging.ERROR, "openchat.command.generation_failed", exc=exc)
            reply = GENERATION_FAILED_TEXT
        if not reply:
            reply = GENERATION_FAILED_TEXT
        await client.send_message(client.create_text_message(reply))
