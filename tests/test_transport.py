"""Unit tests for HttpTransport: auth, timeouts, retry policy, cancellation."""

import asyncio
import base64

import httpx
import pytest

from jira_api_client.core.config import ConnectionConfig
from jira_api_client.core.errors import ApiErrorKind, TransportError
from jira_api_client.services.transport import ApiRequest


def test_basic_auth_header(make_transport):
    transport = make_transport(lambda request: httpx.Response(200))
    scheme, _, token = transport.auth_header.partition(" ")

    assert scheme == "Basic"
    assert base64.b64decode(token).decode() == "user@example.com:token"


def test_bearer_auth_header(make_transport):
    cfg = ConnectionConfig(base_url="https://example.atlassian.net", auth_token="pat-1")
    transport = make_transport(lambda request: httpx.Response(200), cfg)
    assert transport.auth_header == "Bearer pat-1"


def test_timeout_from_config(make_transport):
    transport = make_transport(lambda request: httpx.Response(200))
    client = transport._get_client()
    assert client.timeout == httpx.Timeout(5.0)


def test_backoff_is_exponential(make_transport):
    transport = make_transport(lambda request: httpx.Response(200))
    assert [transport.backoff_delay(n) for n in (1, 2, 3)] == [0.1, 0.2, 0.4]


@pytest.mark.asyncio
async def test_send_applies_headers_and_returns_raw(make_transport):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["request_id"] = request.headers["X-Request-ID"]
        return httpx.Response(200, json={"ok": True}, headers={"X-AREQUESTID": "jira-42"})

    async with make_transport(handler) as transport:
        raw = await transport.send(ApiRequest("GET", "/rest/api/2/myself", params={"expand": "groups"}))

    assert seen["url"] == "https://example.atlassian.net/rest/api/2/myself?expand=groups"
    assert seen["auth"].startswith("Basic ")
    assert seen["request_id"]
    assert raw.status_code == 200
    assert raw.json() == {"ok": True}
    assert raw.request_id == "jira-42"
    assert raw.header("x-arequestid") == "jira-42"


@pytest.mark.asyncio
async def test_network_errors_are_retried_then_succeed(make_transport, sleeper):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] < 3:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json={})

    raw = await make_transport(handler).send(ApiRequest("GET", "/rest/api/2/myself"))

    assert raw.status_code == 200
    assert calls["n"] == 3
    assert sleeper.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_retries_exhausted_raise_transport_error(make_transport, sleeper):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportError) as excinfo:
        await make_transport(handler).send(ApiRequest("GET", "/rest/api/2/issue/ABC-1"))

    error = excinfo.value
    assert error.kind is ApiErrorKind.NETWORK
    assert error.attempts == 3
    assert isinstance(error.cause, httpx.ReadTimeout)
    assert error.request_id
    assert calls["n"] == 3
    assert len(sleeper.delays) == 2


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt(make_transport, sleeper):
    cfg = ConnectionConfig(base_url="https://example.atlassian.net", auth_token="pat", retry_count=0)
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(TransportError):
        await make_transport(handler, cfg).send(ApiRequest("GET", "/rest/api/2/myself"))
    assert calls["n"] == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 404, 429, 500, 503])
async def test_http_error_statuses_are_not_retried(make_transport, sleeper, status):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(status, text="nope")

    raw = await make_transport(handler).send(ApiRequest("GET", "/rest/api/2/issue/ABC-1"))

    assert raw.status_code == status
    assert raw.text == "nope"
    assert calls["n"] == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_cancellation_is_not_retried(make_transport):
    calls = {"n": 0}
    started = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        started.set()
        await asyncio.sleep(30)
        return httpx.Response(200)

    transport = make_transport(handler)
    task = asyncio.create_task(transport.send(ApiRequest("GET", "/rest/api/2/myself")))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert calls["n"] == 1
    await transport.aclose()


@pytest.mark.asyncio
async def test_json_body_is_sent(make_transport):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.content
        seen["method"] = request.method
        return httpx.Response(201, json={"id": "1", "key": "ABC-1"})

    raw = await make_transport(handler).send(ApiRequest("POST", "/rest/api/2/issue", json={"fields": {"summary": "x"}}))

    assert seen["method"] == "POST"
    assert b'"summary"' in seen["body"]
    assert raw.status_code == 201


def _slow_body(chunks: int, interval: float):
    async def body():
        for _ in range(chunks):
            await asyncio.sleep(interval)
            yield b"x"

    return body()


@pytest.mark.asyncio
async def test_slow_body_exceeds_attempt_timeout(make_transport, sleeper):
    cfg = ConnectionConfig(
        base_url="https://example.atlassian.net", auth_token="pat", timeout_ms=100, retry_count=0
    )

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=_slow_body(6, 0.05))

    with pytest.raises(TransportError) as excinfo:
        await make_transport(handler, cfg).send(ApiRequest("GET", "/rest/api/2/myself"))

    assert excinfo.value.attempts == 1
    assert isinstance(excinfo.value.cause, asyncio.TimeoutError)
    assert "100 ms" in excinfo.value.message


@pytest.mark.asyncio
async def test_attempt_timeout_is_retried(make_transport, sleeper):
    cfg = ConnectionConfig(
        base_url="https://example.atlassian.net",
        auth_token="pat",
        timeout_ms=100,
        retry_count=1,
        retry_backoff_ms=100,
    )
    calls = {"n": 0}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            return httpx.Response(200, content=_slow_body(6, 0.05))
        return httpx.Response(200, json={"ok": True})

    raw = await make_transport(handler, cfg).send(ApiRequest("GET", "/rest/api/2/myself"))

    assert raw.json() == {"ok": True}
    assert calls["n"] == 2
    assert sleeper.delays == [0.1]
