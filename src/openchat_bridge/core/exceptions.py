"""Shared error hierarchy.

Adapters compose these types so retry and severity behavior stays consistent
across every surface of the bridge.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base error for the bridge."""

    recoverable: bool = True
    severity: str = "error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message


class TransientError(BridgeError):
    """Retryable failure (network, rate limits, temporarily unavailable peers)."""

    recoverable = True
    severity = "warning"


class PermanentError(BridgeError):
    """Non-retryable failure (validation, auth, configuration)."""

    recoverable = False
    severity = "error"
