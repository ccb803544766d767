"""Error types raised by the storage client and the failure classifier."""

from __future__ import annotations

from enum import Enum
from typing import Optional

import httpx

from .models import ErrorResponse


class FailureReason(str, Enum):
    UNKNOWN = "unknown"
    NOT_AUTHORIZED = "not_authorized"
    INTERNAL = "internal"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_INPUT = "invalid_input"


# (status, lowercase body fragment or None for "any body", reason); first match wins
_REASON_RULES = (
    (400, "authorization", FailureReason.NOT_AUTHORIZED),
    (400, "malformed", FailureReason.NOT_AUTHORIZED),
    (400, "invalid signature", FailureReason.NOT_AUTHORIZED),
    (400, "invalid", FailureReason.INVALID_INPUT),
    (401, None, FailureReason.NOT_AUTHORIZED),
    (404, "not found", FailureReason.NOT_FOUND),
    (409, "exists", FailureReason.ALREADY_EXISTS),
    (500, None, FailureReason.INTERNAL),
)


def detect_reason(status_code: Optional[int], content: Optional[str]) -> FailureReason:
    """Classify a failed response by status code and body text."""

    if content is None:
        return FailureReason.UNKNOWN

    body = content.lower()
    for status, fragment, reason in _REASON_RULES:
        if status_code != status:
            continue
        if fragment is None or fragment in body:
            return reason
    return FailureReason.UNKNOWN


class StorageError(RuntimeError):
    """Raised when the remote storage service rejects a request.

    ``reason`` is classified once, when the error is built.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        content: Optional[str] = None,
        response: Optional[httpx.Response] = None,
        error_response: Optional[ErrorResponse] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.content = content
        self.response = response
        self.error_response = error_response
        self.reason = detect_reason(status_code, content)

    @classmethod
    def from_response(cls, response: httpx.Response, content: Optional[str]) -> "StorageError":
        """Build the error for a non-success response whose body has already been read."""

        error_response = ErrorResponse.parse_content(content)
        status_code = response.status_code
        message = content or f"HTTP {response.status_code}"
        if error_response is not None:
            status_code = error_response.status_code_value or status_code
            message = error_response.message or message
        return cls(
            message,
            status_code=status_code,
            content=content,
            response=response,
            error_response=error_response,
        )

    def __repr__(self) -> str:
        return f"StorageError(reason={self.reason.value}, status_code={self.status_code}, message={str(self)!r})"


class StorageArgumentError(ValueError):
    """Raised when the client is called with invalid arguments."""


class TransferCancelledError(Exception):
    """Raised when the caller cancels an upload or download in progress."""
