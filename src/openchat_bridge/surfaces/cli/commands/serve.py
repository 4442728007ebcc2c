from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

import typer
import uvicorn

from ....core.config import BridgeConfig
from ....core.logging_utils import setup_rotating_logger
from ....integrations.openchat.config import OpenChatBotConfig, OpenChatBotConfigError
from ....integrations.openchat.service import OpenChatBridgeService
from ...web.app import create_app


def register_serve_commands(
    app: typer.Typer,
    *,
    require_bridge_config: Callable[[Optional[Path]], BridgeConfig],
    load_factory: Callable[[str], Callable],
    raise_exit: Callable,
) -> None:
    @app.command("serve")
    def serve(
        runtime: str = typer.Option(
            ...,
            "--runtime",
            help="Agent runtime factory as module:callable; called with the bridge config",
        ),
        command_factory: Optional[str] = typer.Option(
            None,
            "--command-factory",
            help="Command client factory as module:callable (enables /execute_command)",
        ),
        path: Optional[Path] = typer.Option(None, "--path", help="Bridge root path"),
        host: Optional[str] = typer.Option(None, "--host", help="Host to bind"),
        port: Optional[int] = typer.Option(None, "--port", help="Port to bind"),
    ):
        config = require_bridge_config(path)
        try:
            bot_config = OpenChatBotConfig.from_raw(config.section("openchat"), config.env)
        except OpenChatBotConfigError as exc:
            raise_exit(str(exc), cause=exc)
        runtime_factory = load_factory(runtime)
        command_factory_fn = load_factory(command_factory) if command_factory else None
        logger = setup_rotating_logger("openchat_bridge", config.log)

        agent_runtime = runtime_factory(config)
        command_client_factory = command_factory_fn(config) if command_factory_fn else None
        service = OpenChatBridgeService(
            bot_config,
            agent_runtime,
            command_client_factory=command_client_factory,
            logger=logger,
        )
        bind_host = host or bot_config.host
        bind_port = port or bot_config.port
        typer.echo(f"Serving OpenChat bot on http://{bind_host}:{bind_port}")
        uvicorn.run(
            create_app(service),
            host=bind_host,
            port=bind_port,
            log_level=logging.getLevelName(config.log.level).lower(),
        )
