import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, cast

import yaml
from dotenv import dotenv_values

CONFIG_FILENAME = "openchat-bridge.yml"
OVERRIDE_FILENAME = "openchat-bridge.override.yml"
DEFAULT_LOG_PATH = ".openchat-bridge/bridge.log"
DEFAULT_LOG_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 3

DEFAULT_CONFIG: Dict[str, Any] = {
    "openchat": {
        "port": 3000,
        "host": "0.0.0.0",
        "welcome_new_members": False,
        "welcome_on_install": False,
        "directory": {
            "cache_ttl_seconds": 900,
        },
        "transport": {
            "timeout_seconds": 10.0,
            "max_attempts": 3,
        },
    },
    "log": {
        "path": DEFAULT_LOG_PATH,
        "level": "INFO",
        "max_bytes": DEFAULT_LOG_MAX_BYTES,
        "backup_count": DEFAULT_LOG_BACKUP_COUNT,
    },
}


class ConfigError(Exception):
    """Raised when the bridge config file cannot be loaded or is invalid."""


@dataclasses.dataclass
class LogConfig:
    path: Optional[Path]
    max_bytes: int
    backup_count: int
    level: int = logging.INFO


@dataclasses.dataclass
class BridgeConfig:
    root: Path
    raw: Dict[str, Any]
    log: LogConfig
    env: Dict[str, str]

    def section(self, name: str) -> Dict[str, Any]:
        value = self.raw.get(name)
        return value if isinstance(value, dict) else {}


def _merge_defaults(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = cast(Dict[str, Any], json.loads(json.dumps(base)))
    for key, value in overrides.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def resolve_env_for_root(
    root: Path, base_env: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """Return a merged env mapping for a root without mutating process env.

    Values already present in the base env win over the `.env` file.
    """
    env: Dict[str, str] = {}
    candidate = root / ".env"
    if candidate.exists():
        for key, value in dotenv_values(candidate).items():
            if key and value is not None:
                env[str(key)] = str(value)
    env.update(dict(base_env) if base_env is not None else dict(os.environ))
    return env


def _parse_log_level(value: Any) -> int:
    if isinstance(value, int):
        return value
    name = str(value or "INFO").strip().upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        raise ConfigError(f"log.level must be a logging level name, got {value!r}")
    return level


def _parse_log_config(root: Path, raw: Dict[str, Any]) -> LogConfig:
    log_raw = raw.get("log")
    cfg = log_raw if isinstance(log_raw, dict) else {}
    path_value = cfg.get("path", DEFAULT_LOG_PATH)
    path: Optional[Path] = None
    if path_value:
        if not isinstance(path_value, str):
            raise ConfigError("log.path must be a string path")
        path = (root / path_value).resolve()
    try:
        max_bytes = int(cfg.get("max_bytes", DEFAULT_LOG_MAX_BYTES))
        backup_count = int(cfg.get("backup_count", DEFAULT_LOG_BACKUP_COUNT))
    except (TypeError, ValueError) as exc:
        raise ConfigError("log.max_bytes and log.backup_count must be integers") from exc
    return LogConfig(
        path=path,
        max_bytes=max(max_bytes, 0),
        backup_count=max(backup_count, 0),
        level=_parse_log_level(cfg.get("level")),
    )


def load_bridge_config(
    start: Path, *, env: Optional[Mapping[str, str]] = None
) -> BridgeConfig:
    """Load `openchat-bridge.yml` (plus override file and `.env`) rooted at `start`."""
    root = start.resolve()
    if root.is_file():
        root = root.parent
    merged = _merge_defaults(DEFAULT_CONFIG, _load_yaml_dict(root / CONFIG_FILENAME))
    try:
        override = _load_yaml_dict(root / OVERRIDE_FILENAME)
    except ConfigError as exc:
        raise ConfigError(
            f"Invalid override config {root / OVERRIDE_FILENAME}; fix or delete it: {exc}"
        ) from exc
    if override:
        merged = _merge_defaults(merged, override)
    return BridgeConfig(
        root=root,
        raw=merged,
        log=_parse_log_config(root, merged),
        env=resolve_env_for_root(root, env),
    )
