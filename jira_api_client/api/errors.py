from __future__ import annotations

import math
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jira_api_client.core.errors import ApiError, ApiErrorKind, ConfigError
from jira_api_client.utils.logging import logger

STATUS_BY_KIND: Dict[ApiErrorKind, int] = {
    ApiErrorKind.AUTH: 401,
    ApiErrorKind.NOT_FOUND: 404,
    ApiErrorKind.VALIDATION: 400,
    ApiErrorKind.RATE_LIMITED: 429,
    ApiErrorKind.SERVER: 502,
    ApiErrorKind.MALFORMED_RESPONSE: 502,
    ApiErrorKind.NETWORK: 502,
}


def _error_json(
    request: Request,
    code: str,
    message: str,
    status_code: int,
    details: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code, "message": message, "details": details},
            "request_id": getattr(request.state, "request_id", None),
        },
        headers=headers,
    )


def status_for(exc: ApiError) -> int:
    """HTTP status returned to our caller for a JIRA-side failure."""
    if exc.kind is ApiErrorKind.AUTH and exc.status_code in (401, 403):
        return exc.status_code
    return STATUS_BY_KIND[exc.kind]


def install_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        logger.warning(
            "jira_api_error",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "kind": exc.kind.value,
                "status_code": exc.status_code,
                "upstream_request_id": exc.request_id,
            },
        )
        headers = None
        if exc.retry_after is not None:
            headers = {"Retry-After": str(math.ceil(exc.retry_after))}
        return _error_json(request, exc.kind.value, exc.message, status_for(exc), exc.details, headers)

    @app.exception_handler(ConfigError)
    async def config_error_handler(request: Request, exc: ConfigError):
        logger.error("jira_not_configured", extra={"request_id": getattr(request.state, "request_id", None)})
        return _error_json(request, "jira_not_configured", exc.message, 503)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "path": request.url.path,
                "method": request.method,
            },
        )
        return _error_json(request, "internal_server_error", "An unexpected error occurred.", 500, str(exc))
