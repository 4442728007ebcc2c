from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from openchat_bridge.core.config import LogConfig
from openchat_bridge.core.logging_utils import log_event, setup_rotating_logger


def test_log_event_emits_json_payload(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("openchat_bridge.tests.log_event")
    caplog.set_level(logging.INFO, logger=logger.name)

    log_event(
        logger,
        logging.INFO,
        "openchat.test.event",
        count=3,
        path=Path("/tmp/x"),
        nested={"a": (1, 2)},
        exc=ValueError("boom"),
    )

    payload = json.loads(caplog.records[-1].getMessage())
    assert payload == {
        "event": "openchat.test.event",
        "count": 3,
        "path": "/tmp/x",
        "nested": {"a": [1, 2]},
        "error": "boom",
        "error_type": "ValueError",
    }


def test_log_event_truncates_long_fields(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("openchat_bridge.tests.truncate")
    caplog.set_level(logging.INFO, logger=logger.name)

    log_event(logger, logging.INFO, "openchat.test.long", text="x" * 5000)

    payload = json.loads(caplog.records[-1].getMessage())
    assert len(payload["text"]) == 2003


def test_log_event_skips_disabled_levels(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("openchat_bridge.tests.disabled")
    caplog.set_level(logging.WARNING, logger=logger.name)

    log_event(logger, logging.DEBUG, "openchat.test.quiet")

    assert caplog.records == []


def test_setup_rotating_logger_writes_to_file(tmp_path: Path) -> None:
    log_path = tmp_path / "logs" / "bridge.log"
    logger = setup_rotating_logger(
        "openchat_bridge.tests.rotating",
        LogConfig(path=log_path, max_bytes=1024, backup_count=1, level=logging.DEBUG),
    )
    try:
        log_event(logger, logging.DEBUG, "openchat.test.file")
        for handler in logger.handlers:
            handler.flush()
        assert "openchat.test.file" in log_path.read_text(encoding="utf-8")
        assert logger.propagate is False
        assert len(logger.handlers) == 2
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
