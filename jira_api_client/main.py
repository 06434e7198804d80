from __future__ import annotations

import time
import uuid
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Dict

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from jira_api_client.api.errors import install_exception_handlers
from jira_api_client.api.routes.health import router as health_router
from jira_api_client.api.routes.jira import router as jira_router
from jira_api_client.core.config import Settings, get_settings
from jira_api_client.middleware.auth import api_key_auth_middleware
from jira_api_client.utils.logging import configure_logging, logger


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a unique request_id to each incoming request
    and includes it in response headers and structured logs.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        start = time.perf_counter()

        request.state.request_id = request_id

        try:
            response = await call_next(request)
        except Exception:
            duration_ms = int((time.perf_counter() - start) * 1000)
            logger.exception(
                "unhandled_exception",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": duration_ms,
                },
            )
            raise

        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": getattr(response, "status_code", 0),
                "duration_ms": duration_ms,
            },
        )
        return response


def read_version() -> str:
    """Installed package version with fallback."""
    try:
        return version("jira-api-client")
    except PackageNotFoundError:
        return "0.1.0"


def build_app() -> FastAPI:
    """
    PUBLIC_INTERFACE
    Create and configure the FastAPI application, including routes, middleware, and exception handlers.
    """
    settings: Settings = get_settings()
    configure_logging(level=settings.LOG_LEVEL, fmt=settings.LOG_FORMAT)

    app = FastAPI(
        title="JIRA API Client",
        description="HTTP surface over the typed JIRA client facade.",
        version=read_version(),
        openapi_tags=[
            {"name": "root", "description": "Service information and health"},
            {"name": "jira", "description": "JIRA issue endpoints"},
        ],
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.APP_CORS_ORIGINS or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(BaseHTTPMiddleware, dispatch=api_key_auth_middleware)
    # outermost, so auth rejections carry a request id too
    app.add_middleware(RequestIDMiddleware)

    install_exception_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(jira_router)
    app.include_router(health_router)
    app.include_router(api_v1)

    @app.get("/", tags=["root"], summary="Service info")
    async def root(request: Request) -> Dict[str, Any]:
        """
        PUBLIC_INTERFACE
        Returns basic service information including name and docs URL.
        """
        return {
            "name": "JIRA API Client",
            "docs_url": str(request.base_url) + "docs",
            "request_id": getattr(request.state, "request_id", None),
        }

    if not settings.jira_configured:
        logger.warning("jira_not_configured", extra={"base_url_set": bool(settings.jira_base_url)})

    return app


# uvicorn jira_api_client.main:app --host 0.0.0.0 --port 3001
app = build_app()
