from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    """Error payload nested in ErrorResponse."""
    code: str = Field(..., description="Error code identifier")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional extra details")


class ErrorResponse(BaseModel):
    """Standard error model for consistent JSON responses."""
    error: ErrorBody
    request_id: Optional[str] = Field(default=None, description="Per-request identifier")


# PUBLIC_INTERFACE
class JiraSearchRequest(BaseModel):
    """Request body for a single page of JQL search."""
    jql: str = Field(..., description="JQL query string")
    start_at: int = Field(default=0, ge=0, description="Starting index for pagination")
    max_results: int = Field(default=50, ge=1, le=100, description="Maximum results to return")
    fields: Optional[List[str]] = Field(default=None, description="Optional list of fields to include")


class HealthResponse(BaseModel):
    """Liveness/readiness payload."""
    status: str = Field(..., description="Service status")
    version: Optional[str] = Field(default=None, description="Package version")
    details: Dict[str, Any] = Field(default_factory=dict, description="Extra diagnostics")
