"""Route decoded bot events to registry updates, welcomes and message handling.

Each delivery is independent: optional side effects (welcome messages, profile
lookups) are caught and logged here, while registry mutation and rejection
classification propagate so the delivery layer can report a failure.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Optional

from ...core.logging_utils import log_event
from .client import BotClient, BotClientFactory
from .constants import INVALID_SCOPE_REASON
from .directory import UserDirectory
from .errors import NotificationRejectedError
from .locations import build_message_metadata, location_key
from .messages import MessageHandler
from .models import (
    BotChatEvent,
    BotCommunityEvent,
    BotEvent,
    BotInstalledEvent,
    BotUninstalledEvent,
    Installation,
    InstallationRecord,
    MemberJoinedEvent,
    MessageEvent,
)
from .notifications import NotificationRejection, NotificationVerifier, handle_notification
from .registry import InstallationRegistry
from .runtime import AgentRuntime
from .welcome import (
    describe_room,
    describe_user,
    ensure_mention,
    fallback_member_welcome,
    install_welcome_text,
    member_welcome_prompt,
)

RejectionPredicate = Callable[[str], bool]


def is_invalid_scope_rejection(reason: str) -> bool:
    """Lifecycle deliveries without an actionable scope are expected, not failures."""
    return reason == INVALID_SCOPE_REASON


def rejection_reason(error: Any) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, BaseException):
        return str(error)
    try:
        return json.dumps(error if error is not None else "Unknown error")
    except (TypeError, ValueError):
        return repr(error)


class EventRouter:
    def __init__(
        self,
        *,
        registry: InstallationRegistry,
        client_factory: BotClientFactory,
        message_handler: MessageHandler,
        runtime: AgentRuntime,
        directory: Optional[UserDirectory] = None,
        welcome_new_members: bool = False,
        welcome_on_install: bool = False,
        is_benign_rejection: RejectionPredicate = is_invalid_scope_rejection,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._client_factory = client_factory
        self._message_handler = message_handler
        self._runtime = runtime
        self._directory = directory
        self._welcome_new_members = welcome_new_members
        self._welcome_on_install = welcome_on_install
        self._is_benign_rejection = is_benign_rejection
        self._logger = logger or logging.getLogger(__name__)

    async def handle_notification(
        self,
        signature: str,
        body: bytes,
        *,
        verifier: Optional[NotificationVerifier] = None,
    ) -> None:
        await handle_notification(
            signature,
            body,
            self._client_factory,
            self.route,
            self.handle_rejection,
            verifier=verifier,
        )

    def handle_rejection(self, rejection: NotificationRejection) -> None:
        reason = rejection_reason(rejection.error)
        if self._is_benign_rejection(reason):
            log_event(
                self._logger,
                logging.DEBUG,
                "openchat.notify.rejection_ignored",
                reason=reason,
            )
            return
        raise NotificationRejectedError(reason)

    async def route(self, client: BotClient, event: BotEvent, api_gateway: str) -> None:
        if isinstance(event, BotInstalledEvent):
            await self._on_installed(event, api_gateway)
        elif isinstance(event, BotUninstalledEvent):
            self._registry.record_uninstallation(event.location)
        elif isinstance(event, BotChatEvent):
            if isinstance(event.event, MemberJoinedEvent):
                await self._on_member_joined(event, event.event, api_gateway)
            elif isinstance(event.event, MessageEvent):
                await self._on_message(client, event, event.event, api_gateway)
            else:
                log_event(
                    self._logger,
                    logging.DEBUG,
                    "openchat.chat_event.ignored",
                    chat_event_kind=event.event.kind,
                )
        elif isinstance(event, BotCommunityEvent):
            log_event(
                self._logger,
                logging.DEBUG,
                "openchat.community_event.received",
                community_id=event.community_id.community_id,
                community_event_kind=event.event_kind,
            )
        else:
            log_event(
                self._logger,
                logging.DEBUG,
                "openchat.event.unhandled",
                kind=event.kind,
            )

    def _scoped_client(
        self, installation: Installation, api_gateway: str, **kwargs: Any
    ) -> BotClient:
        return self._client_factory.create_client_for_scope(
            installation.scope,
            installation.record.api_gateway or api_gateway,
            installation.record.granted_autonomous_permissions,
            **kwargs,
        )

    async def _on_installed(self, event: BotInstalledEvent, api_gateway: str) -> None:
        installation = self._registry.record_installation(
            event.location,
            InstallationRecord(
                api_gateway=api_gateway,
                granted_command_permissions=event.granted_command_permissions,
                granted_autonomous_permissions=event.granted_autonomous_permissions,
            ),
        )
        if not self._welcome_on_install:
            return
        key = location_key(event.location)
        try:
            client = self._scoped_client(installation, api_gateway)
            text = install_welcome_text(self._runtime.character)
            result = await client.send_message(client.create_text_message(text))
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "openchat.install.welcome_failed",
                location_key=key,
                exc=exc,
            )
            return
        if result.kind != "success":
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.install.welcome_failed",
                location_key=key,
                error=getattr(result, "message", None),
            )
            return
        log_event(
            self._logger,
            logging.INFO,
            "openchat.install.welcome_sent",
            location_key=key,
        )

    async def _on_member_joined(
        self, chat_event: BotChatEvent, event: MemberJoinedEvent, api_gateway: str
    ) -> None:
        if not self._welcome_new_members:
            return
        installation = self._registry.get_by_chat_id(chat_event.chat_id)
        if installation is None:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.member_joined.unknown_installation",
                chat_kind=chat_event.chat_id.kind,
            )
            return
        gateway = installation.record.api_gateway or api_gateway
        try:
            client = self._scoped_client(installation, api_gateway, thread=chat_event.thread)
            profile = (
                await self._directory.get_profile(gateway, event.user_id)
                if self._directory is not None
                else None
            )
            member = describe_user(profile, event.user_id)
            text = await self._generate_member_welcome(
                member_welcome_prompt(
                    self._runtime.character, member, describe_room(chat_event.chat_id)
                )
            )
            if not text:
                text = fallback_member_welcome(member)
            text = ensure_mention(text, member.mention)
            result = await client.send_message(client.create_text_message(text))
        except Exception as exc:
            log_event(
                self._logger,
                logging.ERROR,
                "openchat.member_joined.welcome_failed",
                user_id=event.user_id,
                exc=exc,
            )
            return
        if result.kind != "success":
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.member_joined.welcome_failed",
                user_id=event.user_id,
                error=getattr(result, "message", None),
            )

    async def _generate_member_welcome(self, prompt: str) -> str:
        try:
            generated = await self._runtime.generate_text(prompt)
        except Exception as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.member_joined.generation_failed",
                exc=exc,
            )
            return ""
        return generated.strip() if isinstance(generated, str) else ""

    async def _on_message(
        self,
        client: BotClient,
        chat_event: BotChatEvent,
        event: MessageEvent,
        api_gateway: str,
    ) -> None:
        installation = self._registry.get_by_chat_id(chat_event.chat_id)
        active_client = (
            self._scoped_client(installation, api_gateway, thread=chat_event.thread)
            if installation is not None
            else client
        )
        metadata = build_message_metadata(
            chat_event.chat_id,
            event.message_id,
            api_gateway,
            chat_event.thread,
        )
        await self._message_handler.handle_message_event(active_client, chat_event, metadata)
