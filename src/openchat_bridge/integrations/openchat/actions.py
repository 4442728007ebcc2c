"""Agent-invokable actions: send a message, read recent history, describe installs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ...core.logging_utils import log_event
from .client import ChatEventsCriteria, ChatEventWrapper
from .constants import (
    DEFAULT_REACTION,
    HISTORY_DEFAULT_LIMIT,
    HISTORY_MAX_LIMIT,
    HISTORY_MIN_LIMIT,
)
from .context import ContextResolver, ResolutionRequest, ResolvedContext
from .models import MessageContent, MessageEvent
from .registry import InstallationRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActionResult:
    success: bool
    text: str
    data: dict[str, Any] = field(default_factory=dict)


def clamp_history_limit(value: Any) -> int:
    try:
        limit = int(value)
    except (TypeError, ValueError):
        limit = HISTORY_DEFAULT_LIMIT
    return max(HISTORY_MIN_LIMIT, min(HISTORY_MAX_LIMIT, limit))


def describe_content(content: MessageContent) -> str:
    kind = content.kind
    if kind == "text_content":
        return (content.text or "").strip()
    if kind == "image_content":
        return f"Image: {content.caption}" if content.caption else "Image attachment"
    if kind == "video_content":
        return f"Video: {content.caption}" if content.caption else "Video attachment"
    if kind == "audio_content":
        return f"Audio: {content.caption}" if content.caption else "Audio clip"
    if kind == "file_content":
        return f"File: {content.name or 'unnamed'}"
    if kind == "poll_content":
        return f"Poll with {content.option_count} options"
    return kind.replace("_", " ")


def format_timestamp(timestamp: Optional[int]) -> str:
    """Render a millisecond epoch timestamp; unknown or invalid values read as `recent`."""
    if timestamp is None:
        return "recent"
    try:
        moment = datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return "recent"
    return moment.isoformat().replace("+00:00", "Z")


def format_history_line(wrapper: ChatEventWrapper, event: MessageEvent) -> str:
    text = describe_content(event.content) or "(no text)"
    return f"#{wrapper.index} · {format_timestamp(wrapper.timestamp)} · {event.sender}: {text}"


async def send_openchat_message(
    resolver: ContextResolver, request: ResolutionRequest, text: str
) -> ActionResult:
    message_text = (text or "").strip()
    if not message_text:
        return ActionResult(False, "No message text provided", {"error": "empty_text"})
    context = resolver.resolve(request)
    if context is None:
        return ActionResult(False, "OpenChat is not available", {"error": "no_installation"})

    client = context.client
    result = await client.send_message(client.create_text_message(message_text))
    if result.kind != "success":
        error = getattr(result, "message", "Unknown error")
        log_event(
            logger,
            logging.ERROR,
            "openchat.action.send_failed",
            location_key=context.location_key,
            error=error,
        )
        return ActionResult(
            False, f"Failed to send message to OpenChat: {error}", {"error": error}
        )
    location_kind = context.installation.location.kind
    log_event(
        logger,
        logging.INFO,
        "openchat.action.sent",
        location_key=context.location_key,
        message_id=result.message_id,
    )
    return ActionResult(
        True,
        f"Message sent to OpenChat {location_kind}",
        {"message_id": str(result.message_id), "location_key": context.location_key},
    )


def can_read_history(resolver: ContextResolver, request: ResolutionRequest) -> bool:
    context = resolver.resolve(request)
    if context is None:
        return False
    permissions = context.installation.record.granted_autonomous_permissions
    return permissions.has_chat_permission("ReadMessages")


async def read_chat_history(
    resolver: ContextResolver,
    request: ResolutionRequest,
    *,
    limit: Optional[int] = None,
) -> ActionResult:
    context = resolver.resolve(request)
    if context is None:
        return ActionResult(False, "OpenChat is not available", {"error": "no_installation"})
    permissions = context.installation.record.granted_autonomous_permissions
    if not permissions.has_chat_permission("ReadMessages"):
        return ActionResult(
            False,
            "The bot is not allowed to read messages in this chat",
            {"error": "missing_permission"},
        )

    if limit is None:
        limit = request.options.get("limit") if request.options else None
    if limit is None:
        openchat_state = request.state.get("openchat") if request.state else None
        if isinstance(openchat_state, dict):
            limit = openchat_state.get("history_limit")
    effective_limit = clamp_history_limit(limit if limit is not None else HISTORY_DEFAULT_LIMIT)

    client = context.client
    summary = await client.chat_summary()
    if summary.kind != "success":
        error = summary.message
        log_event(
            logger,
            logging.ERROR,
            "openchat.action.summary_failed",
            location_key=context.location_key,
            error=error,
        )
        return ActionResult(False, f"Unable to read OpenChat history: {error}", {"error": error})

    start_event_index = max(0, summary.latest_event_index - effective_limit)
    criteria = ChatEventsCriteria(
        start_event_index=start_event_index,
        ascending=True,
        max_events=effective_limit,
        max_messages=effective_limit,
    )
    events = await client.chat_events(criteria, context.metadata.thread_id)
    if events.kind != "success":
        error = events.message
        log_event(
            logger,
            logging.ERROR,
            "openchat.action.events_failed",
            location_key=context.location_key,
            error=error,
        )
        return ActionResult(False, f"Unable to read OpenChat history: {error}", {"error": error})

    messages = [
        (wrapper, wrapper.event)
        for wrapper in events.events
        if isinstance(wrapper.event, MessageEvent)
    ]
    if not messages:
        return ActionResult(True, "No recent OpenChat messages found", {"history": []})

    lines = [format_history_line(wrapper, event) for wrapper, event in messages]
    text = "\n".join([f"Recent OpenChat activity ({context.metadata.chat_id}):", *lines])
    return ActionResult(
        True,
        text,
        {
            "history": lines,
            "limit": effective_limit,
            "start_event_index": start_event_index,
        },
    )


def describe_installations(
    registry: InstallationRegistry, *, current_room: Optional[str] = None
) -> str:
    installations = registry.get_installations()
    if not installations:
        return "OpenChat: Bot not installed in any chats"
    parts = ["OpenChat Installations:"]
    for installation in installations.values():
        scope = installation.scope
        message_mask = installation.record.granted_autonomous_permissions.message
        parts.append(f"- {scope.kind} ({scope.describe()}): permissions={message_mask}")
    if current_room:
        parts.append(f"\nCurrent chat: {current_room}")
    return "\n".join(parts)


def _option_or_state(request: ResolutionRequest, name: str) -> Any:
    value = request.options.get(name) if request.options else None
    if value is None and request.state:
        openchat_state = request.state.get("openchat")
        if isinstance(openchat_state, dict):
            value = openchat_state.get(name)
    return value


def _as_message_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        message_id = int(value)
    except (TypeError, ValueError):
        return None
    return message_id if message_id >= 0 else None


def _missing_chat_permission(context: ResolvedContext, name: str) -> bool:
    permissions = context.installation.record.granted_autonomous_permissions
    return not permissions.has_chat_permission(name)


async def _latest_message_id(context: ResolvedContext) -> Optional[int]:
    client = context.client
    summary = await client.chat_summary()
    if summary.kind != "success":
        return None
    criteria = ChatEventsCriteria(
        start_event_index=max(0, summary.latest_event_index - 1),
        ascending=True,
        max_events=2,
        max_messages=2,
    )
    events = await client.chat_events(criteria, context.metadata.thread_id)
    if events.kind != "success":
        return None
    message_ids = [
        wrapper.event.message_id
        for wrapper in events.events
        if isinstance(wrapper.event, MessageEvent)
    ]
    return message_ids[-1] if message_ids else None


async def react_to_message(
    resolver: ContextResolver,
    request: ResolutionRequest,
    *,
    reaction: Optional[str] = None,
    target_message_id: Optional[Any] = None,
) -> ActionResult:
    """Add a reaction to a message in the resolved chat.

    The target defaults to the message that triggered the action, then to the
    latest message in the chat when the request carries no message id.
    """
    context = resolver.resolve(request)
    if context is None:
        return ActionResult(False, "OpenChat is not available", {"error": "no_installation"})
    if _missing_chat_permission(context, "ReactToMessages"):
        return ActionResult(
            False,
            "The bot is not allowed to react to messages in this chat",
            {"error": "missing_permission"},
        )

    emoji = reaction or _option_or_state(request, "reaction") or DEFAULT_REACTION
    if target_message_id is None:
        target_message_id = _option_or_state(request, "target_message_id")
    if target_message_id is None:
        target_message_id = context.metadata.message_id
    message_id = _as_message_id(target_message_id)
    if message_id is None:
        message_id = await _latest_message_id(context)
    if message_id is None:
        return ActionResult(False, "No message to react to", {"error": "no_target"})

    result = await context.client.add_reaction(
        message_id, str(emoji), context.metadata.thread_id
    )
    if result.kind != "success":
        error = result.message
        log_event(
            logger,
            logging.ERROR,
            "openchat.action.react_failed",
            location_key=context.location_key,
            message_id=message_id,
            error=error,
        )
        return ActionResult(False, f"Failed to react in OpenChat: {error}", {"error": error})
    log_event(
        logger,
        logging.INFO,
        "openchat.action.reacted",
        location_key=context.location_key,
        message_id=message_id,
    )
    return ActionResult(
        True,
        f"Reacted with {emoji} in OpenChat",
        {"message_id": str(message_id), "reaction": str(emoji)},
    )


def _collect_message_ids(values: Iterable[Any]) -> list[int]:
    seen: list[int] = []
    for value in values:
        message_id = _as_message_id(value)
        if message_id is not None and message_id not in seen:
            seen.append(message_id)
    return seen


async def delete_openchat_messages(
    resolver: ContextResolver,
    request: ResolutionRequest,
    *,
    message_ids: Optional[Iterable[Any]] = None,
) -> ActionResult:
    context = resolver.resolve(request)
    if context is None:
        return ActionResult(False, "OpenChat is not available", {"error": "no_installation"})
    if _missing_chat_permission(context, "DeleteMessages"):
        return ActionResult(
            False,
            "The bot is not allowed to delete messages in this chat",
            {"error": "missing_permission"},
        )

    if message_ids is None:
        message_ids = _option_or_state(request, "message_ids")
    if message_ids is None:
        message_ids = [context.metadata.message_id]
    elif isinstance(message_ids, (str, int)):
        message_ids = [message_ids]
    targets = _collect_message_ids(message_ids)
    if not targets:
        return ActionResult(False, "No messages to delete", {"error": "no_target"})

    result = await context.client.delete_messages(targets, context.metadata.thread_id)
    if result.kind != "success":
        error = result.message
        log_event(
            logger,
            logging.ERROR,
            "openchat.action.delete_failed",
            location_key=context.location_key,
            error=error,
        )
        return ActionResult(False, f"Failed to delete OpenChat messages: {error}", {"error": error})
    log_event(
        logger,
        logging.INFO,
        "openchat.action.deleted",
        location_key=context.location_key,
        count=len(targets),
    )
    return ActionResult(
        True,
        f"Deleted {len(targets)} message(s) in OpenChat",
        {"message_ids": [str(message_id) for message_id in targets]},
    )
