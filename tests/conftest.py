"""Test harness configuration.

This repo uses a `src/` layout. In some developer environments an older
installed `openchat_bridge` package can shadow the local sources.

Ensure tests always import the in-repo code.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS = 120


def pytest_configure() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    src_dir = repo_root / "src"
    src_path = str(src_dir)
    if sys.path[:1] != [src_path] and src_path not in sys.path:
        sys.path.insert(0, src_path)


def pytest_collection_modifyitems(
    session: pytest.Session, config: pytest.Config, items: list[pytest.Item]
) -> None:
    """
    Apply a default per-test timeout to non-integration tests.

    This relies on `pytest-timeout` when installed; if it isn't installed, the
    marker is inert but still documents the intent.
    """
    _ = session, config
    for item in items:
        if item.get_closest_marker("integration") is not None:
            continue
        item.add_marker(pytest.mark.timeout(DEFAULT_NON_INTEGRATION_TIMEOUT_SECONDS))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def bridge_root(tmp_path: Path) -> Path:
    """A bridge root with a minimal `openchat-bridge.yml` and `.env`."""

    root = tmp_path / "bridge"
    root.mkdir()
    (root / "openchat-bridge.yml").write_text(
        "openchat:\n  port: 4100\n  welcome_new_members: true\nlog:\n  path: logs/bridge.log\n",
        encoding="utf-8",
    )
    (root / ".env").write_text(
        "\n".join(
            [
                "OPENCHAT_BOT_IDENTITY_PRIVATE_KEY=private-key",
                "OPENCHAT_PUBLIC_KEY=public-key",
                "OPENCHAT_IC_HOST=http://localhost:8080",
                "OPENCHAT_STORAGE_INDEX_CANISTER=storage-index",
            ]
        )
        + "\n",
        encoding="utf-8",
    )
    return root
