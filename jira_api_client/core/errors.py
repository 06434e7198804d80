from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class ApiErrorKind(str, Enum):
    """Classification of a failed Jira interaction."""

    NETWORK = "network"
    AUTH = "auth"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    SERVER = "server"
    MALFORMED_RESPONSE = "malformed_response"


class JiraClientError(Exception):
    """Represents an error interacting with the JIRA API."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ConfigError(JiraClientError):
    """Connection settings are missing or malformed. Fatal at startup."""


class ApiError(JiraClientError):
    """
    PUBLIC_INTERFACE
    A Jira response (or the lack of one) that the caller has to act on.

    ``kind`` is one of ApiErrorKind. ``retry_after`` is only set for
    rate-limited responses that carried a Retry-After header.
    """

    def __init__(
        self,
        kind: ApiErrorKind,
        message: str,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        retry_after: Optional[float] = None,
        details: Any | None = None,
    ):
        super().__init__(message, status_code=status_code, details=details)
        self.kind = ApiErrorKind(kind)
        self.request_id = request_id
        self.retry_after = retry_after

    def __str__(self) -> str:
        parts = [f"[{self.kind.value}]", self.message]
        if self.status_code is not None:
            parts.append(f"(status={self.status_code})")
        if self.request_id:
            parts.append(f"(request_id={self.request_id})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, status_code={self.status_code!r}, "
            f"message={self.message!r}, request_id={self.request_id!r})"
        )


class TransportError(ApiError):
    """Network-level failure that survived every retry attempt."""

    def __init__(
        self,
        message: str,
        attempts: int,
        request_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(
            ApiErrorKind.NETWORK,
            message,
            request_id=request_id,
            details=str(cause) if cause is not None else None,
        )
        self.attempts = attempts
        self.cause = cause
