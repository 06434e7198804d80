from __future__ import annotations

from typing import Iterable, Optional

from fastapi import Request
from starlette.responses import JSONResponse

from jira_api_client.core.config import get_settings
from jira_api_client.utils.logging import logger

OPEN_PATHS = frozenset({"/", "/health", "/ready", "/docs", "/redoc", "/openapi.json"})


def _authorized(api_keys: Iterable[str], request: Request) -> bool:
    """
    Returns True if the request contains a valid API key in either X-API-KEY header
    or Authorization: Bearer <token>.
    """
    keys = set(api_keys)
    if not keys:
        return False

    x_api_key: Optional[str] = request.headers.get("X-API-KEY")
    if x_api_key and x_api_key in keys:
        return True

    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        token = auth[len("Bearer ") :].strip()
        if token and token in keys:
            return True

    return False


async def api_key_auth_middleware(request: Request, call_next):
    """
    PUBLIC_INTERFACE
    Simple API Key authentication. Validates X-API-KEY header or Bearer token against APP_API_KEYS.
    Skips authentication for the service info, health and docs paths.
    """
    path = request.url.path
    if path in OPEN_PATHS:
        return await call_next(request)

    settings = get_settings()
    if _authorized(settings.APP_API_KEYS, request):
        return await call_next(request)

    request_id = getattr(request.state, "request_id", None)
    logger.warning(
        "unauthorized_request",
        extra={"path": path, "method": request.method, "request_id": request_id},
    )
    return JSONResponse(
        status_code=401,
        content={
            "error": {
                "code": "unauthorized",
                "message": "Missing or invalid API key.",
                "details": None,
            },
            "request_id": request_id,
        },
    )
