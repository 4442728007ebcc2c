"""OpenChat integration doctor checks."""

from __future__ import annotations

from urllib.parse import urlparse

from ...core.config import BridgeConfig
from ...core.doctor import DoctorCheck
from .config import (
    IC_HOST_ENV,
    REQUIRED_ENV_VARS,
    OpenChatBotConfig,
    OpenChatBotConfigError,
)
from .directory import needs_root_key


def openchat_doctor_checks(config: BridgeConfig) -> list[DoctorCheck]:
    """Run OpenChat-specific doctor checks for a loaded bridge config."""
    checks: list[DoctorCheck] = []
    env = config.env

    missing = [name for name in REQUIRED_ENV_VARS if not (env.get(name) or "").strip()]
    if missing:
        checks.append(
            DoctorCheck(
                name="OpenChat credentials",
                passed=False,
                message=f"Missing required env vars: {', '.join(missing)}",
                check_id="openchat.env",
                fix="Set them in .env next to openchat-bridge.yml or export them.",
            )
        )
    else:
        checks.append(
            DoctorCheck(
                name="OpenChat credentials",
                passed=True,
                message="All required OpenChat env vars are set.",
                check_id="openchat.env",
                severity="info",
            )
        )

    ic_host = (env.get(IC_HOST_ENV) or "").strip()
    if ic_host:
        parsed = urlparse(ic_host)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            checks.append(
                DoctorCheck(
                    name="OpenChat IC host",
                    passed=False,
                    message=f"{IC_HOST_ENV} is not an http(s) URL: {ic_host!r}",
                    check_id="openchat.ic_host",
                    fix="Use a value such as https://icp-api.io or http://localhost:8080.",
                )
            )
        elif needs_root_key(ic_host):
            checks.append(
                DoctorCheck(
                    name="OpenChat IC host",
                    passed=True,
                    message=(
                        f"{ic_host} is not a mainnet host; the root key will be "
                        "fetched before the first directory lookup."
                    ),
                    check_id="openchat.ic_host",
                    severity="info",
                )
            )
        else:
            checks.append(
                DoctorCheck(
                    name="OpenChat IC host",
                    passed=True,
                    message=f"{ic_host} is a mainnet host.",
                    check_id="openchat.ic_host",
                    severity="info",
                )
            )

    if not missing:
        try:
            bot_config = OpenChatBotConfig.from_raw(config.section("openchat"), env)
        except OpenChatBotConfigError as exc:
            checks.append(
                DoctorCheck(
                    name="OpenChat config",
                    passed=False,
                    message=str(exc),
                    check_id="openchat.config",
                    fix="Fix the openchat section of openchat-bridge.yml.",
                )
            )
        else:
            checks.append(
                DoctorCheck(
                    name="OpenChat config",
                    passed=True,
                    message=(
                        f"Bot server will listen on {bot_config.host}:{bot_config.port}; "
                        f"welcome_new_members={bot_config.welcome_new_members}."
                    ),
                    check_id="openchat.config",
                    severity="info",
                )
            )
    return checks
