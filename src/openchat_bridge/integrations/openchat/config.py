from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .constants import DEFAULT_BOT_PORT, DEFAULT_DIRECTORY_CACHE_TTL_SECONDS
from .errors import OpenChatConfigError

IDENTITY_PRIVATE_KEY_ENV = "OPENCHAT_BOT_IDENTITY_PRIVATE_KEY"
PUBLIC_KEY_ENV = "OPENCHAT_PUBLIC_KEY"
IC_HOST_ENV = "OPENCHAT_IC_HOST"
STORAGE_INDEX_CANISTER_ENV = "OPENCHAT_STORAGE_INDEX_CANISTER"
BOT_PORT_ENV = "OPENCHAT_BOT_PORT"
WELCOME_NEW_MEMBERS_ENV = "OPENCHAT_WELCOME_NEW_MEMBERS"

REQUIRED_ENV_VARS = (
    IDENTITY_PRIVATE_KEY_ENV,
    PUBLIC_KEY_ENV,
    IC_HOST_ENV,
    STORAGE_INDEX_CANISTER_ENV,
)

DEFAULT_HOST = "0.0.0.0"
DEFAULT_TRANSPORT_TIMEOUT_SECONDS = 10.0
DEFAULT_TRANSPORT_MAX_ATTEMPTS = 3


class OpenChatBotConfigError(OpenChatConfigError):
    """Raised when openchat bot config is invalid."""


@dataclass(frozen=True)
class OpenChatBotConfig:
    identity_private_key: str
    openchat_public_key: str
    ic_host: str
    storage_index_canister_id: str
    port: int = DEFAULT_BOT_PORT
    host: str = DEFAULT_HOST
    welcome_new_members: bool = False
    welcome_on_install: bool = False
    directory_cache_ttl_seconds: float = DEFAULT_DIRECTORY_CACHE_TTL_SECONDS
    transport_timeout_seconds: float = DEFAULT_TRANSPORT_TIMEOUT_SECONDS
    transport_max_attempts: int = DEFAULT_TRANSPORT_MAX_ATTEMPTS

    @classmethod
    def from_raw(
        cls, raw: Optional[Mapping[str, Any]], env: Mapping[str, str]
    ) -> "OpenChatBotConfig":
        cfg: Mapping[str, Any] = raw if isinstance(raw, Mapping) else {}

        missing = [name for name in REQUIRED_ENV_VARS if not (env.get(name) or "").strip()]
        if missing:
            raise OpenChatBotConfigError(
                "Missing required environment variables for OpenChat: "
                + ", ".join(missing)
                + ". Set them in your .env file or environment."
            )

        port_value: Any = env.get(BOT_PORT_ENV) or cfg.get("port", DEFAULT_BOT_PORT)
        port = _parse_positive_int(port_value, key="openchat.port")
        if port > 65535:
            raise OpenChatBotConfigError("openchat.port must be <= 65535")

        host = str(cfg.get("host", DEFAULT_HOST)).strip()
        if not host:
            raise OpenChatBotConfigError("openchat.host must be non-empty")

        welcome_env = env.get(WELCOME_NEW_MEMBERS_ENV)
        welcome_new_members = (
            welcome_env.strip().lower() == "true"
            if welcome_env is not None
            else _parse_bool(
                cfg.get("welcome_new_members"),
                default=False,
                key="openchat.welcome_new_members",
            )
        )
        welcome_on_install = _parse_bool(
            cfg.get("welcome_on_install"), default=False, key="openchat.welcome_on_install"
        )

        directory_raw = cfg.get("directory")
        directory_cfg = directory_raw if isinstance(directory_raw, Mapping) else {}
        ttl = _parse_positive_float(
            directory_cfg.get("cache_ttl_seconds", DEFAULT_DIRECTORY_CACHE_TTL_SECONDS),
            key="openchat.directory.cache_ttl_seconds",
        )

        transport_raw = cfg.get("transport")
        transport_cfg = transport_raw if isinstance(transport_raw, Mapping) else {}
        timeout = _parse_positive_float(
            transport_cfg.get("timeout_seconds", DEFAULT_TRANSPORT_TIMEOUT_SECONDS),
            key="openchat.transport.timeout_seconds",
        )
        max_attempts = _parse_positive_int(
            transport_cfg.get("max_attempts", DEFAULT_TRANSPORT_MAX_ATTEMPTS),
            key="openchat.transport.max_attempts",
        )

        return cls(
            identity_private_key=env[IDENTITY_PRIVATE_KEY_ENV].strip(),
            openchat_public_key=env[PUBLIC_KEY_ENV].strip(),
            ic_host=env[IC_HOST_ENV].strip(),
            storage_index_canister_id=env[STORAGE_INDEX_CANISTER_ENV].strip(),
            port=port,
            host=host,
            welcome_new_members=welcome_new_members,
            welcome_on_install=welcome_on_install,
            directory_cache_ttl_seconds=ttl,
            transport_timeout_seconds=timeout,
            transport_max_attempts=max_attempts,
        )


def _parse_bool(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off", ""}:
            return False
    raise OpenChatBotConfigError(f"{key} must be a boolean")


def _parse_positive_int(value: Any, *, key: str) -> int:
    if isinstance(value, bool):
        raise OpenChatBotConfigError(f"{key} must be an integer")
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise OpenChatBotConfigError(f"{key} must be an integer") from exc
    if parsed <= 0:
        raise OpenChatBotConfigError(f"{key} must be > 0")
    return parsed


def _parse_positive_float(value: Any, *, key: str) -> float:
    if isinstance(value, bool):
        raise OpenChatBotConfigError(f"{key} must be a number")
    try:
        parsed = float(value)
    except (TypeError, ValueError) as exc:
        raise OpenChatBotConfigError(f"{key} must be a number") from exc
    if parsed <= 0:
        raise OpenChatBotConfigError(f"{key} must be > 0")
    return parsed
