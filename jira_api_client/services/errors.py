"""Classification of raw JIRA responses into success or ApiError."""

from __future__ import annotations

import math
from typing import Any, Optional, Union

from jira_api_client.core.errors import ApiError, ApiErrorKind
from jira_api_client.services.transport import RawResponse

MAX_DETAIL_CHARS = 500

_VALIDATION_STATUSES = frozenset({400, 409, 422})
_AUTH_STATUSES = frozenset({401, 403})


def kind_for_status(status_code: int) -> Optional[ApiErrorKind]:
    """None means success. Total over every integer."""
    if 200 <= status_code < 300:
        return None
    if status_code in _VALIDATION_STATUSES:
        return ApiErrorKind.VALIDATION
    if status_code in _AUTH_STATUSES:
        return ApiErrorKind.AUTH
    if status_code == 404:
        return ApiErrorKind.NOT_FOUND
    if status_code == 429:
        return ApiErrorKind.RATE_LIMITED
    if 500 <= status_code < 600:
        return ApiErrorKind.SERVER
    return ApiErrorKind.MALFORMED_RESPONSE


def _retry_after(raw: RawResponse) -> Optional[float]:
    value = raw.header("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    if not math.isfinite(seconds):
        return None
    return max(0.0, seconds)


def _error_details(raw: RawResponse) -> Any:
    """Jira's ``errorMessages``/``errors`` when the body has that shape, else a text excerpt."""
    try:
        body = raw.json()
    except (ValueError, RecursionError):
        body = None
    if isinstance(body, dict) and ("errorMessages" in body or "errors" in body):
        messages = body.get("errorMessages") or []
        if isinstance(messages, str):
            messages = [messages]
        errors = body.get("errors") or {}
        if isinstance(messages, list) and isinstance(errors, dict):
            return {"errorMessages": messages, "errors": errors}
    return raw.text[:MAX_DETAIL_CHARS] if raw.text else None


def _message(kind: ApiErrorKind, raw: RawResponse, details: Any) -> str:
    if isinstance(details, dict):
        messages = list(details["errorMessages"])
        messages.extend(f"{k}: {v}" for k, v in details["errors"].items())
        if messages:
            return "; ".join(str(m) for m in messages)
    defaults = {
        ApiErrorKind.AUTH: "Authentication failed. Check the username and API token.",
        ApiErrorKind.NOT_FOUND: "Resource not found",
        ApiErrorKind.VALIDATION: "JIRA rejected the request",
        ApiErrorKind.RATE_LIMITED: "JIRA rate limit exceeded",
        ApiErrorKind.SERVER: f"JIRA server error {raw.status_code}",
    }
    return defaults.get(kind, f"Unexpected JIRA response status {raw.status_code}")


# PUBLIC_INTERFACE
def classify(raw: RawResponse) -> Union[RawResponse, ApiError]:
    """
    Return ``raw`` unchanged for 2xx, otherwise the ApiError it maps to:

      - 400/409/422 -> validation
      - 401/403     -> auth
      - 404         -> not_found
      - 429         -> rate_limited (retry_after from Retry-After)
      - 5xx         -> server
      - anything else -> malformed_response
    """
    kind = kind_for_status(raw.status_code)
    if kind is None:
        return raw
    details = _error_details(raw)
    return ApiError(
        kind,
        _message(kind, raw, details),
        status_code=raw.status_code,
        request_id=raw.request_id,
        retry_after=_retry_after(raw) if kind is ApiErrorKind.RATE_LIMITED else None,
        details=details,
    )


# PUBLIC_INTERFACE
def raise_for_classification(raw: RawResponse) -> RawResponse:
    """Like classify, but raises the ApiError."""
    outcome = classify(raw)
    if isinstance(outcome, ApiError):
        raise outcome
    return outcome
