"""Wire the OpenChat adapter together for one agent runtime."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from ...core.logging_utils import log_event
from .actions import (
    ActionResult,
    delete_openchat_messages,
    describe_installations,
    react_to_message,
    read_chat_history,
    send_openchat_message,
)
from .client import BotClientFactory
from .commands import CommandClientFactory, CommandHandler, CommandOutcome
from .config import OpenChatBotConfig
from .context import ContextResolver, ResolutionRequest, ResolvedContext
from .definition import build_bot_definition
from .directory import UserDirectory
from .errors import OpenChatConfigError
from .messages import MessageManager
from .notifications import NotificationVerifier, PassthroughVerifier
from .registry import InstallationRegistry
from .router import EventRouter
from .runtime import AgentRuntime
from .transport import HttpRelayTransport, PlatformTransport


class OpenChatBridgeService:
    def __init__(
        self,
        config: OpenChatBotConfig,
        runtime: AgentRuntime,
        *,
        transport: Optional[PlatformTransport] = None,
        verifier: Optional[NotificationVerifier] = None,
        command_client_factory: Optional[CommandClientFactory] = None,
        registry: Optional[InstallationRegistry] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.runtime = runtime
        self._logger = logger or logging.getLogger(__name__)
        self.transport: PlatformTransport = transport or HttpRelayTransport(
            config.ic_host, timeout_seconds=config.transport_timeout_seconds
        )
        self.verifier: NotificationVerifier = verifier or PassthroughVerifier()
        self.command_client_factory = command_client_factory
        self.registry = registry or InstallationRegistry(logger=self._logger)
        self.client_factory = BotClientFactory(
            self.transport,
            max_attempts=config.transport_max_attempts,
            logger=self._logger,
        )
        self.directory = UserDirectory(
            self.transport,
            storage_index_canister_id=config.storage_index_canister_id,
            ttl_seconds=config.directory_cache_ttl_seconds,
            logger=self._logger,
        )
        self.message_manager = MessageManager(runtime, logger=self._logger)
        self.router = EventRouter(
            registry=self.registry,
            client_factory=self.client_factory,
            message_handler=self.message_manager,
            runtime=runtime,
            directory=self.directory,
            welcome_new_members=config.welcome_new_members,
            welcome_on_install=config.welcome_on_install,
            logger=self._logger,
        )
        self.resolver = ContextResolver(self.registry, self.client_factory, logger=self._logger)
        self.commands = CommandHandler(runtime, self.registry, logger=self._logger)

    async def handle_notification(self, signature: str, body: bytes) -> None:
        await self.router.handle_notification(signature, body, verifier=self.verifier)

    async def execute_command(self, jwt: str) -> CommandOutcome:
        if self.command_client_factory is None:
            raise OpenChatConfigError("No command client factory is configured")
        invocation = self.command_client_factory.create_client_from_jwt(jwt)
        return await self.commands.execute(invocation)

    def resolve_context(
        self,
        *,
        options: Optional[Mapping[str, Any]] = None,
        state: Optional[Mapping[str, Any]] = None,
        message_metadata: Optional[Mapping[str, Any]] = None,
    ) -> Optional[ResolvedContext]:
        return self.resolver.resolve(
            ResolutionRequest(
                options=options or {},
                state=state or {},
                message_metadata=message_metadata or {},
            )
        )

    async def send_message(self, text: str, request: ResolutionRequest) -> ActionResult:
        return await send_openchat_message(self.resolver, request, text)

    async def read_history(
        self, request: ResolutionRequest, *, limit: Optional[int] = None
    ) -> ActionResult:
        return await read_chat_history(self.resolver, request, limit=limit)

    async def react_to_message(
        self,
        request: ResolutionRequest,
        *,
        reaction: Optional[str] = None,
        target_message_id: Optional[Any] = None,
    ) -> ActionResult:
        return await react_to_message(
            self.resolver, request, reaction=reaction, target_message_id=target_message_id
        )

    async def delete_messages(
        self, request: ResolutionRequest, *, message_ids: Optional[Iterable[Any]] = None
    ) -> ActionResult:
        return await delete_openchat_messages(self.resolver, request, message_ids=message_ids)

    def describe_installations(self) -> str:
        return describe_installations(self.registry)

    def bot_definition(self) -> dict[str, Any]:
        return build_bot_definition(self.runtime.character)

    def log_ready(self) -> None:
        log_event(
            self._logger,
            logging.INFO,
            "openchat.service.ready",
            port=self.config.port,
            bot_definition=f"http://localhost:{self.config.port}/bot_definition",
            welcome_new_members=self.config.welcome_new_members,
        )

    async def aclose(self) -> None:
        await self.transport.aclose()
