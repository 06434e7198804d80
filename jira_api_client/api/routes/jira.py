from __future__ import annotations

from fastapi import APIRouter, Depends, Path, status

from jira_api_client.api.dependencies import get_jira_client
from jira_api_client.models.jira import Issue, IssueDraft, SearchPage, SearchQuery
from jira_api_client.models.schemas import ErrorResponse, JiraSearchRequest
from jira_api_client.services.jira_client import JiraClient

router = APIRouter(prefix="/jira", tags=["jira"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Bad Request"},
    401: {"model": ErrorResponse, "description": "Unauthorized"},
    404: {"model": ErrorResponse, "description": "Not Found"},
    429: {"model": ErrorResponse, "description": "Rate Limited"},
    502: {"model": ErrorResponse, "description": "Bad Gateway"},
    503: {"model": ErrorResponse, "description": "JIRA not configured"},
}


@router.get(
    "/issues/{issue_key}",
    summary="Get Issue",
    response_model=Issue,
    responses=ERROR_RESPONSES,
)
async def get_issue(
    issue_key: str = Path(..., description="JIRA issue key"),
    jira: JiraClient = Depends(get_jira_client),
) -> Issue:
    """Retrieve a JIRA issue by key."""
    return await jira.get_issue(issue_key)


@router.post(
    "/issues",
    summary="Create Issue",
    response_model=Issue,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_issue(
    payload: IssueDraft,
    jira: JiraClient = Depends(get_jira_client),
) -> Issue:
    """Create a new JIRA issue and return it as stored."""
    return await jira.create_issue(payload)


@router.post(
    "/search",
    summary="Search Issues",
    response_model=SearchPage,
    responses=ERROR_RESPONSES,
)
async def search_issues(
    payload: JiraSearchRequest,
    jira: JiraClient = Depends(get_jira_client),
) -> SearchPage:
    """Return one page of a JQL search."""
    query = SearchQuery(
        jql=payload.jql,
        start_at=payload.start_at,
        page_size=payload.max_results,
        fields=payload.fields,
    )
    return await jira.fetch_search_page(query, query.start_at)
