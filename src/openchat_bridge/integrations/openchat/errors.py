from __future__ import annotations

from typing import Optional

from ...core.exceptions import BridgeError, PermanentError, TransientError


class OpenChatError(BridgeError):
    """Base OpenChat integration error."""


class OpenChatConfigError(OpenChatError, PermanentError):
    """OpenChat integration configuration error."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class OpenChatAPIError(OpenChatError):
    """OpenChat platform request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ) -> None:
        if user_message is None:
            user_message = "OpenChat request failed."
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class OpenChatTransientError(OpenChatAPIError, TransientError):
    """Retryable OpenChat failure (5xx, network issues)."""

    recoverable = TransientError.recoverable
    severity = TransientError.severity


class OpenChatPermanentError(OpenChatAPIError, PermanentError):
    """Non-retryable OpenChat failure (auth, invalid requests)."""

    recoverable = PermanentError.recoverable
    severity = PermanentError.severity


class InvalidPrincipalError(OpenChatError, ValueError):
    """Raised when a principal cannot be encoded or decoded."""


class NotificationPayloadError(OpenChatError, ValueError):
    """Raised when a notification body cannot be decoded into a bot event."""


class NotificationRejectedError(OpenChatError):
    """A delivery was rejected for a reason that is not known to be benign."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"OpenChat notification rejected: {reason}")
        self.reason = reason
