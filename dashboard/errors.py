# Errors raised at the CKD backend boundary
from typing import Optional


class BackendError(Exception):
    """Base class for failures talking to the CKD backend."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class BackendTransportError(BackendError):
    """Non-success HTTP status or network failure. Message is shown to the user as-is."""


class MalformedPayloadError(BackendError):
    """Backend answered, but the JSON does not match the expected shape."""
