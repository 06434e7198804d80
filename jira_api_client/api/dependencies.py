from __future__ import annotations

from typing import AsyncIterator

from jira_api_client.core.config import load
from jira_api_client.services.jira_client import JiraClient


# PUBLIC_INTERFACE
async def get_jira_client() -> AsyncIterator[JiraClient]:
    """Yield a JiraClient built from environment settings, closed after the request."""
    client = JiraClient(load())
    try:
        yield client
    finally:
        await client.aclose()
