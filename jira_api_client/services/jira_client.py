from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Set, Union
from urllib.parse import quote

from jira_api_client.core.config import ConnectionConfig
from jira_api_client.core.errors import ApiError, ApiErrorKind
from jira_api_client.models.jira import (
    Issue,
    IssueDraft,
    IssueRef,
    SearchPage,
    SearchQuery,
    missing_required_fields,
)
from jira_api_client.services.errors import raise_for_classification
from jira_api_client.services.transport import ApiRequest, HttpTransport, RawResponse

# always requested so every search hit can be parsed into an Issue
ISSUE_CORE_FIELDS = ("summary", "status", "assignee")
XML_MEDIA_TYPE = "application/xml, text/xml"


class IssueSearch:
    """
    PUBLIC_INTERFACE
    Lazy, restartable sequence of issues matching a SearchQuery.

    Nothing is fetched until iteration starts. Every ``async for`` starts again
    from ``query.start_at``. A failing page raises its ApiError at that point of
    the iteration; issues yielded before it stay valid.
    """

    def __init__(self, client: "JiraClient", query: SearchQuery) -> None:
        self.client = client
        self.query = query

    async def pages(self) -> AsyncIterator[SearchPage]:
        start_at = self.query.start_at
        while True:
            page = await self.client.fetch_search_page(self.query, start_at)
            yield page
            if not page.issues:
                return
            start_at += len(page.issues)
            if start_at >= page.total:
                return

    async def __aiter__(self) -> AsyncIterator[Issue]:
        seen: Set[str] = set()
        async for page in self.pages():
            for issue in page.issues:
                if issue.id in seen:
                    continue
                seen.add(issue.id)
                yield issue

    async def collect(self, limit: Optional[int] = None) -> List[Issue]:
        """Gather issues into a list, stopping early after ``limit`` items."""
        issues: List[Issue] = []
        if limit is not None and limit <= 0:
            return issues
        async for issue in self:
            issues.append(issue)
            if limit is not None and len(issues) >= limit:
                break
        return issues


class JiraClient:
    """
    PUBLIC_INTERFACE
    Typed facade over the JIRA REST API (v2).

    Each operation builds an ApiRequest, sends it through the HttpTransport and
    classifies the response before parsing. Error statuses surface as ApiError
    without any attempt to parse a domain object.
    """

    API_PATH = "/rest/api/2"

    def __init__(
        self,
        config: ConnectionConfig,
        transport: Optional[HttpTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger("jira_api_client.client")
        self.transport = transport or HttpTransport(config, logger=self.logger.getChild("transport"))

    # ------------------------------------------------------------------
    # request plumbing

    def _api(self, path: str) -> str:
        return f"{self.API_PATH}{path}"

    async def _call(self, request: ApiRequest) -> RawResponse:
        raw = await self.transport.send(request)
        return raise_for_classification(raw)

    def _json(self, raw: RawResponse) -> Any:
        try:
            return raw.json()
        except ValueError as exc:
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "JIRA returned a non-JSON body",
                status_code=raw.status_code,
                request_id=raw.request_id,
                details=raw.text[:500],
            ) from exc

    @staticmethod
    def _issue_path_key(key: str) -> str:
        if not key or not key.strip():
            raise ApiError(ApiErrorKind.VALIDATION, "Issue key must not be empty")
        return quote(key.strip(), safe="")

    # ------------------------------------------------------------------
    # issues

    # PUBLIC_INTERFACE
    async def get_issue(self, key: str) -> Issue:
        """Fetch one issue. Raises ApiError(not_found) when the key does not resolve."""
        path_key = self._issue_path_key(key)
        raw = await self._call(ApiRequest("GET", self._api(f"/issue/{path_key}")))
        return Issue.from_api(self._json(raw), request_id=raw.request_id)

    # PUBLIC_INTERFACE
    def search_issues(self, query: Union[SearchQuery, str]) -> IssueSearch:
        """Search issues with JQL; pages are fetched lazily while iterating."""
        if isinstance(query, str):
            query = SearchQuery(jql=query)
        return IssueSearch(self, query)

    async def fetch_search_page(self, query: SearchQuery, start_at: int) -> SearchPage:
        params: Dict[str, Any] = {"jql": query.jql, "startAt": start_at, "maxResults": query.page_size}
        if query.fields:
            requested = list(query.fields)
            requested.extend(f for f in ISSUE_CORE_FIELDS if f not in requested)
            params["fields"] = ",".join(requested)
        raw = await self._call(ApiRequest("GET", self._api("/search"), params=params))
        page = SearchPage.from_api(self._json(raw), request_id=raw.request_id)
        self.logger.debug(
            "jira_search_page",
            extra={
                "request_id": raw.request_id,
                "start_at": start_at,
                "count": len(page.issues),
                "total": page.total,
            },
        )
        return page

    # PUBLIC_INTERFACE
    async def create_issue(self, fields: Union[Mapping[str, Any], IssueDraft]) -> Issue:
        """
        Create an issue and return it as stored by JIRA.

        Required fields (project, summary, issuetype) are checked before any
        request is made; a missing one raises ApiError(validation).
        """
        if isinstance(fields, IssueDraft):
            fields = fields.to_fields()
        missing = missing_required_fields(fields)
        if missing:
            raise ApiError(
                ApiErrorKind.VALIDATION,
                f"Missing required issue fields: {', '.join(missing)}",
                details={"errors": {name: "required" for name in missing}},
            )

        raw = await self._call(ApiRequest("POST", self._api("/issue"), json={"fields": dict(fields)}))
        try:
            created = IssueRef.model_validate(self._json(raw))
        except ValueError as exc:
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "Unexpected create issue payload from JIRA",
                status_code=raw.status_code,
                request_id=raw.request_id,
            ) from exc
        self.logger.info("jira_issue_created", extra={"request_id": raw.request_id, "issue_key": created.key})
        return await self.get_issue(created.key)

    # PUBLIC_INTERFACE
    async def get_issue_xml(self, key: str) -> str:
        """Fetch the issue's XML view (``/si/jira.issueviews:issue-xml``)."""
        path_key = self._issue_path_key(key)
        raw = await self._call(
            ApiRequest(
                "GET",
                f"/si/jira.issueviews:issue-xml/{path_key}/{path_key}.xml",
                accept=XML_MEDIA_TYPE,
            )
        )
        return raw.text

    # ------------------------------------------------------------------
    # session

    # PUBLIC_INTERFACE
    async def get_myself(self) -> Dict[str, Any]:
        """Return the authenticated user."""
        raw = await self._call(ApiRequest("GET", self._api("/myself")))
        data = self._json(raw)
        if not isinstance(data, dict):
            raise ApiError(
                ApiErrorKind.MALFORMED_RESPONSE,
                "Unexpected user payload from JIRA",
                status_code=raw.status_code,
                request_id=raw.request_id,
            )
        return data

    # PUBLIC_INTERFACE
    async def test_connection(self) -> bool:
        """True when the credentials are accepted; False on auth or network failure."""
        try:
            await self.get_myself()
        except ApiError as exc:
            if exc.kind not in (ApiErrorKind.AUTH, ApiErrorKind.NETWORK):
                raise
            self.logger.warning(
                "jira_connection_failed",
                extra={"request_id": exc.request_id, "kind": exc.kind.value, "error": exc.message},
            )
            return False
        return True

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> "JiraClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
