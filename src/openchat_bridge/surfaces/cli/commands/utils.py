from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Any, Callable, NoReturn, Optional

import typer

from ....core.config import BridgeConfig, ConfigError, load_bridge_config

logger = logging.getLogger("openchat_bridge.cli")


def get_bridge_version() -> str:
    import importlib.metadata

    try:
        return importlib.metadata.version("openchat-bridge")
    except Exception:
        return "unknown"


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_bridge_config(path: Optional[Path]) -> BridgeConfig:
    try:
        return load_bridge_config(path or Path.cwd())
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def load_factory(reference: str) -> Callable[..., Any]:
    """Resolve a `package.module:attribute` reference to a callable."""
    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise_exit(f"Expected 'module:factory', got {reference!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise_exit(f"Cannot import {module_name}: {exc}", cause=exc)
    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise_exit(f"{module_name} has no attribute {attr!r}", cause=exc)
    if not callable(target):
        raise_exit(f"{reference} is not callable")
    return target
