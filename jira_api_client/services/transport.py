from __future__ import annotations

import asyncio
import base64
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from jira_api_client.core.config import ConnectionConfig
from jira_api_client.core.errors import TransportError
from jira_api_client.utils.logging import timed_log_debug

JSON_MEDIA_TYPE = "application/json"


@dataclass(frozen=True)
class ApiRequest:
    """An outbound call: ``path`` is relative to the instance base URL."""

    method: str
    path: str
    params: Optional[Dict[str, Any]] = None
    json: Any = None
    accept: str = JSON_MEDIA_TYPE


@dataclass(frozen=True)
class RawResponse:
    """Unclassified HTTP response as received from JIRA."""

    status_code: int
    url: str
    text: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    request_id: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> Any:
        """Decode the body; raises ValueError when it is not JSON."""
        return json.loads(self.text) if self.text else None


class HttpTransport:
    """
    PUBLIC_INTERFACE
    Async HTTP transport for the JIRA REST API.

    Applies auth and the per-attempt timeout from ConnectionConfig and retries
    network-level failures with exponential backoff. Every HTTP response is
    returned as a RawResponse regardless of status: interpreting 4xx/5xx is the
    caller's job and they are never retried here.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        logger: Optional[logging.Logger] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger("jira_api_client.transport")
        self._sleep = sleep
        self._http_transport = http_transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def auth_header(self) -> str:
        if self.config.uses_basic_auth:
            raw = f"{self.config.username}:{self.config.secret()}".encode("utf-8")
            return f"Basic {base64.b64encode(raw).decode('ascii')}"
        return f"Bearer {self.config.secret()}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers={
                    "Accept": JSON_MEDIA_TYPE,
                    "Content-Type": JSON_MEDIA_TYPE,
                    "Authorization": self.auth_header,
                },
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._http_transport,
            )
        return self._client

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return self.config.retry_backoff_ms * (2 ** (attempt - 1)) / 1000.0

    def _reason(self, exc: Optional[Exception]) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return f"no complete response within {self.config.timeout_ms} ms"
        return str(exc)

    async def send(self, request: ApiRequest) -> RawResponse:
        """
        Perform the request, retrying up to ``retry_count`` extra times on
        connection errors and timeouts. ``timeout_ms`` bounds each attempt as a
        whole, response body included. Raises TransportError once retries
        are exhausted. Cancellation propagates immediately.
        """
        max_attempts = self.config.retry_count + 1
        request_id = uuid.uuid4().hex
        headers = {"X-Request-ID": request_id, "Accept": request.accept}
        last_exc: Optional[Exception] = None

        for attempt in range(1, max_attempts + 1):
            with timed_log_debug(
                "jira_http_request",
                request_id=request_id,
                extra={"method": request.method, "url": request.path, "attempt": attempt},
                log=self.logger,
            ):
                try:
                    resp = await asyncio.wait_for(
                        self._get_client().request(
                            request.method,
                            request.path,
                            params=request.params,
                            json=request.json,
                            headers=headers,
                        ),
                        self.config.timeout_seconds,
                    )
                except (httpx.TransportError, asyncio.TimeoutError) as exc:
                    last_exc = exc
                else:
                    self.logger.debug(
                        "jira_http_response",
                        extra={
                            "request_id": request_id,
                            "method": request.method,
                            "url": request.path,
                            "status_code": resp.status_code,
                            "attempt": attempt,
                        },
                    )
                    return RawResponse(
                        status_code=resp.status_code,
                        url=str(resp.request.url),
                        text=resp.text,
                        headers=dict(resp.headers),
                        request_id=resp.headers.get("X-AREQUESTID") or request_id,
                    )

            if attempt < max_attempts:
                delay = self.backoff_delay(attempt)
                self.logger.debug(
                    "jira_network_error_retrying",
                    extra={"request_id": request_id, "delay_s": delay, "attempt": attempt, "error": self._reason(last_exc)},
                )
                await self._sleep(delay)

        self.logger.warning(
            "jira_network_error",
            extra={"request_id": request_id, "attempts": max_attempts, "error": self._reason(last_exc)},
        )
        raise TransportError(
            f"JIRA request {request.method} {request.path} failed after {max_attempts} attempt(s): {self._reason(last_exc)}",
            attempts=max_attempts,
            request_id=request_id,
            cause=last_exc,
        )

    async def aclose(self) -> None:
        """Close underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
