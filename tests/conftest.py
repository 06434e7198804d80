from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from jira_api_client.core.config import ConnectionConfig
from jira_api_client.services.jira_client import JiraClient
from jira_api_client.services.transport import HttpTransport

BASE_URL = "https://example.atlassian.net"


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers the requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def build_issue(
    key: str,
    summary: str = "Test issue",
    issue_id: Optional[str] = None,
    status: Optional[str] = "To Do",
    assignee: Optional[str] = None,
    **extra_fields: Any,
) -> Dict[str, Any]:
    fields: Dict[str, Any] = {"summary": summary, **extra_fields}
    if status is not None:
        fields["status"] = {"name": status, "id": "1"}
    fields["assignee"] = {"displayName": assignee, "accountId": "abc"} if assignee else None
    return {"id": issue_id or str(10000 + int(key.rsplit("-", 1)[-1])), "key": key, "fields": fields}


@pytest.fixture
def config() -> ConnectionConfig:
    return ConnectionConfig(
        base_url=BASE_URL,
        username="user@example.com",
        auth_token="token",
        timeout_ms=5000,
        retry_count=2,
        retry_backoff_ms=100,
    )


@pytest.fixture
def sleeper() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def issue_payload() -> Callable[..., Dict[str, Any]]:
    return build_issue


@pytest.fixture
def make_transport(config, sleeper):
    """Build an HttpTransport whose network is the given httpx handler."""

    def _make(handler: Callable, cfg: Optional[ConnectionConfig] = None) -> HttpTransport:
        return HttpTransport(cfg or config, sleep=sleeper, http_transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def make_client(config, make_transport):
    """Build a JiraClient backed by a scripted httpx handler."""

    def _make(handler: Callable, cfg: Optional[ConnectionConfig] = None) -> JiraClient:
        cfg = cfg or config
        return JiraClient(cfg, transport=make_transport(handler, cfg))

    return _make
