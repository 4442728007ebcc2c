"""Resolve which installation, metadata and client an outbound action should use.

Resolution is an ordered list of strategies, each a small object with a single
`try_resolve(request, registry)` method. The first strategy that matches wins;
results from different strategies are never mixed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

from ...core.logging_utils import log_event
from .client import BotClient, BotClientFactory
from .locations import build_metadata_from_installation, room_key
from .models import Installation, MessageMetadata, metadata_fields
from .registry import InstallationRegistry

_EMPTY: Mapping[str, Any] = {}


def _section(raw: Any, key: str) -> Mapping[str, Any]:
    if not isinstance(raw, Mapping):
        return _EMPTY
    value = raw.get(key)
    return value if isinstance(value, Mapping) else _EMPTY


def _candidate(value: Any) -> Optional[dict[str, Any]]:
    if isinstance(value, (MessageMetadata, Mapping)):
        return metadata_fields(value)
    return None


@dataclass(frozen=True)
class ResolutionRequest:
    options: Mapping[str, Any] = field(default_factory=dict)
    state: Mapping[str, Any] = field(default_factory=dict)
    message_metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def option_candidate(self) -> Optional[dict[str, Any]]:
        explicit = self.options.get("openchat_metadata") if self.options else None
        if explicit is not None:
            return _candidate(explicit)
        return _candidate(_section(self.options, "metadata").get("openchat"))

    @property
    def state_candidate(self) -> Optional[dict[str, Any]]:
        return _candidate(_section(self.state, "openchat").get("metadata"))

    @property
    def message_candidate(self) -> Optional[dict[str, Any]]:
        if isinstance(self.message_metadata, MessageMetadata):
            return _candidate(self.message_metadata)
        return _candidate(
            self.message_metadata.get("openchat") if self.message_metadata else None
        )

    @property
    def preferred_location_key(self) -> Optional[str]:
        for source in (self.options, self.state):
            value = _section(source, "openchat").get("location_key")
            if isinstance(value, str) and value:
                return value
        return None

    def candidates(self) -> list[dict[str, Any]]:
        return [
            candidate
            for candidate in (
                self.option_candidate,
                self.state_candidate,
                self.message_candidate,
            )
            if candidate is not None
        ]


@dataclass(frozen=True)
class StrategyMatch:
    location_key: str
    installation: Installation
    metadata: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class ResolvedContext:
    installation: Installation
    location_key: str
    metadata: MessageMetadata
    client: BotClient


class ResolutionStrategy(Protocol):
    name: str

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]: ...


def _match_candidate(
    candidate: Optional[dict[str, Any]], registry: InstallationRegistry
) -> Optional[StrategyMatch]:
    if not candidate:
        return None
    key = candidate.get("location_key")
    if not isinstance(key, str) or not key:
        return None
    installation = registry.get(key)
    if installation is None:
        return None
    return StrategyMatch(location_key=key, installation=installation, metadata=candidate)


class OptionMetadataStrategy:
    name = "option_metadata"

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]:
        return _match_candidate(request.option_candidate, registry)


class StateMetadataStrategy:
    name = "state_metadata"

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]:
        return _match_candidate(request.state_candidate, registry)


class MessageMetadataStrategy:
    name = "message_metadata"

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]:
        return _match_candidate(request.message_candidate, registry)


class PreferredKeyStrategy:
    name = "preferred_location_key"

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]:
        key = request.preferred_location_key
        if not key:
            return None
        installation = registry.get(key)
        if installation is None:
            return None
        return StrategyMatch(location_key=key, installation=installation)


class FirstInstallationStrategy:
    name = "first_installation"

    def try_resolve(
        self, request: ResolutionRequest, registry: InstallationRegistry
    ) -> Optional[StrategyMatch]:
        first = registry.first()
        if first is None:
            return None
        key, installation = first
        return StrategyMatch(location_key=key, installation=installation)


def default_strategies() -> list[ResolutionStrategy]:
    return [
        OptionMetadataStrategy(),
        StateMetadataStrategy(),
        MessageMetadataStrategy(),
        PreferredKeyStrategy(),
        FirstInstallationStrategy(),
    ]


def _thread_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _merge_metadata(
    synthesized: MessageMetadata, explicit: Mapping[str, Any], location_key: str
) -> MessageMetadata:
    merged = synthesized.to_dict()
    merged.update(explicit)
    merged["location_key"] = location_key
    thread_id = _thread_id(merged.get("thread_id"))
    chat_id = str(merged["chat_id"])
    if "room_key" in explicit:
        resolved_room_key = str(explicit["room_key"])
    else:
        resolved_room_key = room_key(chat_id, thread_id)
    return MessageMetadata(
        chat_kind=str(merged["chat_kind"]),
        chat_id=chat_id,
        location_key=location_key,
        room_key=resolved_room_key,
        message_id=str(merged.get("message_id") or ""),
        api_gateway=str(merged["api_gateway"]),
        thread_id=thread_id,
        reply_to_message_id=(
            str(merged["reply_to_message_id"])
            if merged.get("reply_to_message_id") is not None
            else None
        ),
    )


class ContextResolver:
    def __init__(
        self,
        registry: InstallationRegistry,
        client_factory: BotClientFactory,
        *,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._registry = registry
        self._client_factory = client_factory
        self._strategies = list(strategies) if strategies is not None else default_strategies()
        self._logger = logger or logging.getLogger(__name__)

    def resolve(self, request: ResolutionRequest) -> Optional[ResolvedContext]:
        """Return the context for an outbound action, or None when unavailable."""
        match: Optional[StrategyMatch] = None
        strategy_name = ""
        if len(self._registry):
            for strategy in self._strategies:
                match = strategy.try_resolve(request, self._registry)
                if match is not None:
                    strategy_name = strategy.name
                    break
        if match is None:
            log_event(
                self._logger,
                logging.INFO,
                "openchat.context.unavailable",
                installations=len(self._registry),
            )
            return None

        explicit = match.metadata
        if explicit is None:
            explicit = next(
                (c for c in request.candidates() if not c.get("location_key")),
                {},
            )
        synthesized = build_metadata_from_installation(
            match.location_key, match.installation, explicit
        )
        metadata = _merge_metadata(synthesized, explicit, match.location_key)
        record = match.installation.record
        client = self._client_factory.create_client_for_scope(
            match.installation.scope,
            record.api_gateway,
            record.granted_autonomous_permissions,
            thread=metadata.thread_id,
        )
        log_event(
            self._logger,
            logging.DEBUG,
            "openchat.context.resolved",
            strategy=strategy_name,
            location_key=match.location_key,
        )
        return ResolvedContext(
            installation=match.installation,
            location_key=match.location_key,
            metadata=metadata,
            client=client,
        )
