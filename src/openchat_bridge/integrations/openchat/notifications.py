"""Inbound notification delivery: verify, decode, scope, then dispatch."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Protocol, Union

from ...core.logging_utils import log_event
from .client import BotClient, BotClientFactory
from .constants import INVALID_SCOPE_REASON
from .errors import NotificationPayloadError, OpenChatError
from .events import parse_bot_event
from .locations import scope_from_location
from .models import (
    ActionScope,
    BotChatEvent,
    BotCommunityEvent,
    BotEvent,
    BotInstalledEvent,
    BotUninstalledEvent,
    ChatActionScope,
    CommunityActionScope,
)
from .transport import unpack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationRejection:
    """Why a delivery could not be dispatched; `error` is a string or an exception."""

    error: Any


EventCallback = Callable[[BotClient, BotEvent, str], Awaitable[None]]
RejectionCallback = Callable[[NotificationRejection], Union[None, Awaitable[None]]]


class NotificationVerifier(Protocol):
    def verify(self, signature: str, body: bytes) -> None: ...


class PassthroughVerifier:
    """Accepts any non-empty signature; real verification lives outside the bridge."""

    def verify(self, signature: str, body: bytes) -> None:
        if not isinstance(signature, str) or not signature.strip():
            raise NotificationPayloadError("Missing OpenChat signature")


def decode_notification(body: bytes) -> tuple[BotEvent, str]:
    try:
        raw = unpack(body)
    except ValueError as exc:
        raise NotificationPayloadError("Notification body is not valid msgpack") from exc
    return parse_bot_event(raw)


def scope_for_event(event: BotEvent) -> Optional[ActionScope]:
    if isinstance(event, (BotInstalledEvent, BotUninstalledEvent)):
        return scope_from_location(event.location)
    if isinstance(event, BotChatEvent):
        return ChatActionScope(event.chat_id)
    if isinstance(event, BotCommunityEvent):
        return CommunityActionScope(event.community_id)
    return None


async def _maybe_await(result: Union[None, Awaitable[None]]) -> None:
    if inspect.isawaitable(result):
        await result


async def handle_notification(
    signature: str,
    body: bytes,
    factory: BotClientFactory,
    on_event: EventCallback,
    on_rejected: RejectionCallback,
    *,
    verifier: Optional[NotificationVerifier] = None,
) -> None:
    """Deliver one notification.

    Verification or decoding failures are reported through `on_rejected`, as
    is a payload with no actionable scope (reason `"Invalid scope"`). Whatever
    `on_event` or `on_rejected` raise propagates to the caller.
    """
    active_verifier = verifier or PassthroughVerifier()
    try:
        active_verifier.verify(signature, body)
        event, api_gateway = decode_notification(body)
    except (OpenChatError, ValueError) as exc:
        log_event(logger, logging.DEBUG, "openchat.notify.undecodable", exc=exc)
        await _maybe_await(on_rejected(NotificationRejection(exc)))
        return

    scope = scope_for_event(event)
    if scope is None:
        await _maybe_await(on_rejected(NotificationRejection(INVALID_SCOPE_REASON)))
        return

    thread = event.thread if isinstance(event, BotChatEvent) else None
    client = factory.create_client_for_scope(scope, api_gateway, thread=thread)
    log_event(
        logger,
        logging.DEBUG,
        "openchat.notify.received",
        kind=event.kind,
        scope=scope.describe(),
        api_gateway=api_gateway,
    )
    await on_event(client, event, api_gateway)
