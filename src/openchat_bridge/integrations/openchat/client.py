"""Outbound bot client bound to one action scope.

Every call returns a tagged result (`kind == "success"` or `"error"`); ordinary
platform failures never raise out of the client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Sequence, Union

from ...core.logging_utils import log_event
from ...core.retry import retry_transient
from .constants import (
    ADD_REACTION_METHOD,
    CHAT_EVENTS_METHOD,
    CHAT_SUMMARY_METHOD,
    DELETE_MESSAGES_METHOD,
    SEND_MESSAGE_METHOD,
)
from .errors import OpenChatError
from .events import parse_chat_event
from .locations import describe_chat, scope_to_wire
from .models import (
    ActionScope,
    ChatActionScope,
    ChatEventPayload,
    ChatIdentifier,
    Permissions,
)
from .transport import PlatformTransport


@dataclass(frozen=True)
class TextMessage:
    text: str
    finalised: bool = True
    thread: Optional[int] = None

    def set_finalised(self, finalised: bool) -> "TextMessage":
        return TextMessage(text=self.text, finalised=finalised, thread=self.thread)

    def to_response(self) -> dict[str, Any]:
        return {
            "content": {"kind": "text_content", "text": self.text},
            "finalised": self.finalised,
            "thread": self.thread,
        }


@dataclass(frozen=True)
class ErrorResult:
    message: str
    code: Optional[int] = None
    kind: ClassVar[str] = "error"


@dataclass(frozen=True)
class SendMessageSuccess:
    message_id: int
    event_index: int = 0
    kind: ClassVar[str] = "success"


@dataclass(frozen=True)
class ChatSummarySuccess:
    latest_event_index: int = 0
    latest_message_index: Optional[int] = None
    kind: ClassVar[str] = "success"


@dataclass(frozen=True)
class ChatEventWrapper:
    index: int
    event: ChatEventPayload
    timestamp: Optional[int] = None


@dataclass(frozen=True)
class ChatEventsSuccess:
    events: tuple[ChatEventWrapper, ...] = field(default_factory=tuple)
    latest_event_index: int = 0
    kind: ClassVar[str] = "success"


@dataclass(frozen=True)
class OperationSuccess:
    kind: ClassVar[str] = "success"


@dataclass(frozen=True)
class ChatEventsCriteria:
    start_event_index: int
    ascending: bool = True
    max_events: int = 10
    max_messages: int = 10

    def to_wire(self) -> dict[str, Any]:
        return {
            "kind": "chat_events_page",
            "start_event_index": self.start_event_index,
            "ascending": self.ascending,
            "max_events": self.max_events,
            "max_messages": self.max_messages,
        }


SendMessageResult = Union[SendMessageSuccess, ErrorResult]
ChatSummaryResult = Union[ChatSummarySuccess, ErrorResult]
ChatEventsResult = Union[ChatEventsSuccess, ErrorResult]
OperationResult = Union[OperationSuccess, ErrorResult]


def _error_from_response(response: dict[str, Any], fallback: str) -> ErrorResult:
    code = response.get("code")
    message = response.get("message")
    return ErrorResult(
        message=str(message) if message else fallback,
        code=code if isinstance(code, int) and not isinstance(code, bool) else None,
    )


def _operation_result(
    response: Union[dict[str, Any], ErrorResult], fallback: str
) -> OperationResult:
    if isinstance(response, ErrorResult):
        return response
    if response.get("kind") != "success":
        return _error_from_response(response, fallback)
    return OperationSuccess()


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class BotClient:
    def __init__(
        self,
        transport: PlatformTransport,
        *,
        scope: ActionScope,
        api_gateway: str,
        permissions: Optional[Permissions] = None,
        thread: Optional[int] = None,
        max_attempts: int = 3,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self.scope = scope
        self.api_gateway = api_gateway
        self.permissions = permissions
        self.thread = thread
        self._max_attempts = max(1, max_attempts)
        self._logger = logger or logging.getLogger(__name__)

    @property
    def chat_id(self) -> Optional[ChatIdentifier]:
        if isinstance(self.scope, ChatActionScope):
            return self.scope.chat
        return None

    def create_text_message(self, text: str, *, finalised: bool = True) -> TextMessage:
        return TextMessage(text=text, finalised=finalised, thread=self.thread)

    async def send_message(self, message: TextMessage) -> SendMessageResult:
        if self.permissions is not None and not self.permissions.has_message_permission("Text"):
            return ErrorResult(message="Bot lacks the Text message permission")
        response = await self._call(
            SEND_MESSAGE_METHOD,
            {
                "content": {"kind": "text_content", "text": message.text},
                "finalised": message.finalised,
                "thread": message.thread,
            },
        )
        if isinstance(response, ErrorResult):
            return response
        if response.get("kind") != "success" or "message_id" not in response:
            return _error_from_response(response, "send_message failed")
        return SendMessageSuccess(
            message_id=_as_int(response.get("message_id")),
            event_index=_as_int(response.get("event_index")),
        )

    async def chat_summary(self) -> ChatSummaryResult:
        response = await self._call(CHAT_SUMMARY_METHOD, {})
        if isinstance(response, ErrorResult):
            return response
        if response.get("kind") != "success":
            return _error_from_response(response, "chat_summary failed")
        latest_message_index = response.get("latest_message_index")
        return ChatSummarySuccess(
            latest_event_index=_as_int(response.get("latest_event_index")),
            latest_message_index=(
                _as_int(latest_message_index) if latest_message_index is not None else None
            ),
        )

    async def chat_events(
        self, criteria: ChatEventsCriteria, thread: Optional[int] = None
    ) -> ChatEventsResult:
        response = await self._call(
            CHAT_EVENTS_METHOD,
            {"events": criteria.to_wire(), "thread": thread},
        )
        if isinstance(response, ErrorResult):
            return response
        if response.get("kind") != "success":
            return _error_from_response(response, "chat_events failed")
        wrappers: list[ChatEventWrapper] = []
        for raw in response.get("events") or []:
            if not isinstance(raw, dict):
                continue
            try:
                event = parse_chat_event(raw.get("event"))
            except (OpenChatError, ValueError) as exc:
                log_event(
                    self._logger,
                    logging.WARNING,
                    "openchat.client.event_skipped",
                    index=raw.get("index"),
                    exc=exc,
                )
                continue
            timestamp = raw.get("timestamp")
            wrappers.append(
                ChatEventWrapper(
                    index=_as_int(raw.get("index")),
                    event=event,
                    timestamp=_as_int(timestamp) if timestamp is not None else None,
                )
            )
        return ChatEventsSuccess(
            events=tuple(wrappers),
            latest_event_index=_as_int(response.get("latest_event_index")),
        )

    async def add_reaction(
        self, message_id: int, reaction: str, thread: Optional[int] = None
    ) -> OperationResult:
        response = await self._call(
            ADD_REACTION_METHOD,
            {"message_id": message_id, "reaction": reaction, "thread": thread},
        )
        return _operation_result(response, "add_reaction failed")

    async def delete_messages(
        self, message_ids: Sequence[int], thread: Optional[int] = None
    ) -> OperationResult:
        response = await self._call(
            DELETE_MESSAGES_METHOD,
            {"message_ids": list(message_ids), "thread": thread},
        )
        return _operation_result(response, "delete_messages failed")

    async def _call(
        self, method: str, payload: dict[str, Any]
    ) -> Union[dict[str, Any], ErrorResult]:
        request = {"scope": scope_to_wire(self.scope), **payload}
        invoke = retry_transient(max_attempts=self._max_attempts)(self._transport.call)
        try:
            return await invoke(self.api_gateway, method, request)
        except OpenChatError as exc:
            log_event(
                self._logger,
                logging.WARNING,
                "openchat.client.call_failed",
                method=method,
                scope=self.scope.describe(),
                api_gateway=self.api_gateway,
                exc=exc,
            )
            return ErrorResult(message=str(exc), code=getattr(exc, "status_code", None))

    def __repr__(self) -> str:
        target = describe_chat(self.chat_id) if self.chat_id is not None else self.scope.describe()
        return f"BotClient(scope={self.scope.kind}:{target}, api_gateway={self.api_gateway!r})"


class BotClientFactory:
    """Builds scoped clients that share one transport."""

    def __init__(
        self,
        transport: PlatformTransport,
        *,
        max_attempts: int = 3,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._transport = transport
        self._max_attempts = max_attempts
        self._logger = logger

    @property
    def transport(self) -> PlatformTransport:
        return self._transport

    def create_client_for_scope(
        self,
        scope: ActionScope,
        api_gateway: str,
        permissions: Optional[Permissions] = None,
        *,
        thread: Optional[int] = None,
    ) -> BotClient:
        return BotClient(
            self._transport,
            scope=scope,
            api_gateway=api_gateway,
            permissions=permissions,
            thread=thread,
            max_attempts=self._max_attempts,
            logger=self._logger,
        )
