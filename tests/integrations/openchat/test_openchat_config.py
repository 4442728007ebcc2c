from __future__ import annotations

from pathlib import Path

import pytest

from openchat_bridge.core.config import load_bridge_config
from openchat_bridge.integrations.openchat.config import (
    OpenChatBotConfig,
    OpenChatBotConfigError,
)
from openchat_bridge.integrations.openchat.doctor import openchat_doctor_checks
from tests.fixtures.openchat_fakes import TEST_ENV


def test_from_raw_uses_defaults() -> None:
    config = OpenChatBotConfig.from_raw({}, TEST_ENV)

    assert config.port == 3000
    assert config.host == "0.0.0.0"
    assert config.welcome_new_members is False
    assert config.directory_cache_ttl_seconds == 900
    assert config.ic_host == "https://icp-api.io"


def test_missing_env_lists_every_name() -> None:
    with pytest.raises(OpenChatBotConfigError) as excinfo:
        OpenChatBotConfig.from_raw({}, {"OPENCHAT_PUBLIC_KEY": "k"})
    message = str(excinfo.value)
    assert "OPENCHAT_BOT_IDENTITY_PRIVATE_KEY" in message
    assert "OPENCHAT_IC_HOST" in message
    assert "OPENCHAT_STORAGE_INDEX_CANISTER" in message
    assert "OPENCHAT_PUBLIC_KEY," not in message


def test_env_overrides_port_and_welcome_flag() -> None:
    env = {**TEST_ENV, "OPENCHAT_BOT_PORT": "4500", "OPENCHAT_WELCOME_NEW_MEMBERS": "true"}
    config = OpenChatBotConfig.from_raw({"port": 3100, "welcome_new_members": False}, env)
    assert config.port == 4500
    assert config.welcome_new_members is True

    env["OPENCHAT_WELCOME_NEW_MEMBERS"] = "yes"
    assert OpenChatBotConfig.from_raw({}, env).welcome_new_members is False


@pytest.mark.parametrize(
    "raw",
    [
        {"port": "abc"},
        {"port": 70000},
        {"port": 0},
        {"host": "  "},
        {"welcome_on_install": "maybe"},
        {"directory": {"cache_ttl_seconds": -1}},
        {"transport": {"max_attempts": True}},
    ],
)
def test_invalid_values_raise(raw: dict) -> None:
    with pytest.raises(OpenChatBotConfigError):
        OpenChatBotConfig.from_raw(raw, TEST_ENV)


def test_doctor_checks_report_missing_env(tmp_path: Path) -> None:
    config = load_bridge_config(tmp_path, env={})
    checks = {check.check_id: check for check in openchat_doctor_checks(config)}

    assert checks["openchat.env"].status == "error"
    assert "openchat.config" not in checks


def test_doctor_checks_pass_with_dotenv(bridge_root: Path) -> None:
    config = load_bridge_config(bridge_root, env={})
    checks = {check.check_id: check for check in openchat_doctor_checks(config)}

    assert checks["openchat.env"].passed
    assert checks["openchat.ic_host"].passed
    assert "root key" in checks["openchat.ic_host"].message
    assert "4100" in checks["openchat.config"].message


def test_doctor_checks_flag_bad_host(tmp_path: Path) -> None:
    env = {**TEST_ENV, "OPENCHAT_IC_HOST": "icp-api.io"}
    config = load_bridge_config(tmp_path, env=env)
    checks = {check.check_id: check for check in openchat_doctor_checks(config)}
    assert checks["openchat.ic_host"].status == "error"
