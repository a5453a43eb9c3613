"""Error taxonomy shared by the client, the job tracker and the assembler."""
from typing import Optional


class DashboardError(Exception):
    """Base class for errors surfaced to the dashboard orchestrator."""

    code = "DASHBOARD_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TransientFetchError(DashboardError):
    """Network failure, timeout or retryable upstream status (5xx, 429)."""

    code = "TRANSIENT_FETCH"


class AuthError(DashboardError):
    """Upstream rejected the API credential (401/403). Never retried automatically."""

    code = "AUTH"


class MalformedResponse(DashboardError):
    """Upstream answered but the payload is missing expected fields or is not JSON."""

    code = "MALFORMED_RESPONSE"


class JobFailed(DashboardError):
    """The remote analysis job reached its terminal failure state."""

    code = "JOB_FAILED"

    def __init__(self, job_id: str, message: str):
        super().__init__(message)
        self.job_id = job_id
