from __future__ import annotations

import pytest

from openchat_bridge.core.exceptions import PermanentError, TransientError
from openchat_bridge.core.retry import retry_transient


@pytest.mark.anyio
async def test_retry_transient_retries_until_success() -> None:
    attempts: list[int] = []

    @retry_transient(max_attempts=3, base_wait=0.001, max_wait=0.001)
    async def flaky() -> str:
        attempts.append(1)
        if len(attempts) < 3:
            raise TransientError("busy")
        return "ok"

    assert await flaky() == "ok"
    assert len(attempts) == 3


@pytest.mark.anyio
async def test_retry_transient_reraises_last_error() -> None:
    attempts: list[int] = []

    @retry_transient(max_attempts=2, base_wait=0.001, max_wait=0.001)
    async def always_busy() -> None:
        attempts.append(1)
        raise TransientError("still busy")

    with pytest.raises(TransientError):
        await always_busy()
    assert len(attempts) == 2


@pytest.mark.anyio
async def test_retry_transient_does_not_retry_permanent_errors() -> None:
    attempts: list[int] = []

    @retry_transient(max_attempts=3, base_wait=0.001, max_wait=0.001)
    async def broken() -> None:
        attempts.append(1)
        raise PermanentError("bad request")

    with pytest.raises(PermanentError):
        await broken()
    assert len(attempts) == 1
