from fastapi import APIRouter

from jira_api_client.core.config import get_settings
from jira_api_client.models.schemas import HealthResponse

router = APIRouter(prefix="", tags=["root"])


@router.get(
    "/health",
    summary="Health check",
    description="Returns service liveness status.",
    response_model=HealthResponse,
)
# PUBLIC_INTERFACE
def health():
    """Basic liveness endpoint."""
    from jira_api_client.main import read_version  # lazy import to avoid cycles

    return HealthResponse(status="ok", version=read_version())


@router.get(
    "/ready",
    summary="Readiness check",
    description="Checks minimal configuration readiness for JIRA connectivity.",
    response_model=HealthResponse,
)
# PUBLIC_INTERFACE
def ready():
    """Readiness endpoint indicating if minimal JIRA configuration exists."""
    settings = get_settings()
    ready_state = settings.jira_configured
    return HealthResponse(
        status="ready" if ready_state else "not_ready",
        details={"jiraConfigured": ready_state},
    )
