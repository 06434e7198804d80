from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from jira_api_client.core.errors import ApiError, ApiErrorKind

REQUIRED_CREATE_FIELDS = ("project", "summary", "issuetype")


# Wire shapes. Only the parts the facade reads are typed; the rest is kept as-is.

class _NamedRef(BaseModel):
    model_config = ConfigDict(extra="allow")
    name: str


class _UserRef(BaseModel):
    model_config = ConfigDict(extra="allow")
    displayName: Optional[str] = None
    name: Optional[str] = None
    accountId: Optional[str] = None


class _IssueFieldsPayload(BaseModel):
    model_config = ConfigDict(extra="allow")
    summary: str
    status: Optional[_NamedRef] = None
    assignee: Optional[_UserRef] = None


class _IssuePayload(BaseModel):
    model_config = ConfigDict(extra="allow")
    id: str
    key: str
    fields: _IssueFieldsPayload


class _SearchPayload(BaseModel):
    model_config = ConfigDict(extra="allow")
    startAt: int = Field(ge=0)
    maxResults: int = Field(ge=0)
    total: int = Field(ge=0)
    issues: List[Dict[str, Any]] = Field(default_factory=list)


def _malformed(what: str, exc: ValidationError, request_id: Optional[str]) -> ApiError:
    return ApiError(
        ApiErrorKind.MALFORMED_RESPONSE,
        f"Unexpected {what} payload from JIRA",
        request_id=request_id,
        details=exc.errors(include_url=False, include_context=False),
    )


# PUBLIC_INTERFACE
class Issue(BaseModel):
    """A Jira work item. Built only from a fully validated API payload."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Issue ID")
    key: str = Field(..., description="Issue key, e.g. PROJ-1")
    summary: str = Field(..., description="Issue summary/title")
    status: Optional[str] = Field(default=None, description="Workflow status name")
    assignee: Optional[str] = Field(default=None, description="Assignee display name")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Raw issue fields payload")

    @classmethod
    def from_api(cls, payload: Any, request_id: Optional[str] = None) -> "Issue":
        """Validate a ``/issue`` payload; raises ApiError(malformed_response) on any mismatch."""
        try:
            parsed = _IssuePayload.model_validate(payload)
        except ValidationError as exc:
            raise _malformed("issue", exc, request_id) from exc

        assignee = parsed.fields.assignee
        return cls(
            id=parsed.id,
            key=parsed.key,
            summary=parsed.fields.summary,
            status=parsed.fields.status.name if parsed.fields.status else None,
            assignee=(assignee.displayName or assignee.name or assignee.accountId) if assignee else None,
            fields=dict(payload["fields"]),
        )


# PUBLIC_INTERFACE
class SearchQuery(BaseModel):
    """JQL query plus the pagination cursor to start from."""

    model_config = ConfigDict(frozen=True)

    jql: str = Field(..., description="JQL string for JIRA search")
    start_at: int = Field(default=0, ge=0, description="Offset of the first result")
    page_size: int = Field(default=50, ge=1, le=100, description="Results fetched per request")
    fields: Optional[List[str]] = Field(default=None, description="Fields to include in results")


# PUBLIC_INTERFACE
class SearchPage(BaseModel):
    """One page of a JQL search."""

    model_config = ConfigDict(frozen=True)

    start_at: int
    max_results: int
    total: int
    issues: List[Issue] = Field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Any, request_id: Optional[str] = None) -> "SearchPage":
        try:
            parsed = _SearchPayload.model_validate(payload)
        except ValidationError as exc:
            raise _malformed("search", exc, request_id) from exc
        # every issue is validated before the page is handed out
        issues = [Issue.from_api(item, request_id=request_id) for item in parsed.issues]
        return cls(start_at=parsed.startAt, max_results=parsed.maxResults, total=parsed.total, issues=issues)


class IssueRef(BaseModel):
    """Response of ``POST /issue``."""

    model_config = ConfigDict(extra="allow")

    id: str
    key: str
    self_url: Optional[str] = Field(default=None, alias="self")


# PUBLIC_INTERFACE
class IssueDraft(BaseModel):
    """Typed input for create_issue, rendered into Jira's ``fields`` mapping."""

    project_key: str = Field(..., description="Project key, e.g., PROJ")
    summary: str = Field(..., description="Short summary/title of the issue")
    issuetype: str = Field(default="Task", description='Issue type name, e.g., "Task", "Bug"')
    description: Optional[str] = Field(default=None, description="Detailed description")
    assignee_account_id: Optional[str] = Field(default=None, description="Assignee accountId")
    extra_fields: Dict[str, Any] = Field(default_factory=dict, description="Additional raw fields")

    def to_fields(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "project": {"key": self.project_key},
            "summary": self.summary,
            "issuetype": {"name": self.issuetype},
        }
        if self.description:
            fields["description"] = self.description
        if self.assignee_account_id:
            fields["assignee"] = {"accountId": self.assignee_account_id}
        fields.update(self.extra_fields)
        return fields


def missing_required_fields(fields: Mapping[str, Any]) -> List[str]:
    """Required create fields that are absent or empty."""
    missing = []
    for name in REQUIRED_CREATE_FIELDS:
        value = fields.get(name)
        if isinstance(value, str):
            value = value.strip()
        elif isinstance(value, Mapping):
            value = {k: v for k, v in value.items() if v not in (None, "")}
        if not value:
            missing.append(name)
    return missing
