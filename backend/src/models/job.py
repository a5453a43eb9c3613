"""Analysis job model and remote status normalisation."""
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    """Lifecycle states of a submitted analysis job."""
    INITIALIZING = "initializing"
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


# Upstream status strings seen in the wild, mapped onto the five states
_REMOTE_STATUS_ALIASES: Dict[str, JobStatus] = {
    "initializing": JobStatus.INITIALIZING,
    "submitting": JobStatus.INITIALIZING,
    "queued": JobStatus.QUEUED,
    "pending": JobStatus.QUEUED,
    "processing": JobStatus.PROCESSING,
    "running": JobStatus.PROCESSING,
    "embedding": JobStatus.PROCESSING,
    "projecting": JobStatus.PROCESSING,
    "similarity": JobStatus.PROCESSING,
    "completed": JobStatus.COMPLETED,
    "complete": JobStatus.COMPLETED,
    "succeeded": JobStatus.COMPLETED,
    "success": JobStatus.COMPLETED,
    "failed": JobStatus.FAILED,
    "error": JobStatus.FAILED,
}


def normalize_remote_status(raw_status: Any) -> Optional[JobStatus]:
    """
    Map an upstream status string onto JobStatus.

    Args:
        raw_status: Value of the "status" field of a job status response

    Returns:
        Matching JobStatus, or None if the value is missing or unrecognised
    """
    if isinstance(raw_status, JobStatus):
        return raw_status
    if not isinstance(raw_status, str):
        return None
    return _REMOTE_STATUS_ALIASES.get(raw_status.strip().lower())


@dataclass
class Job:
    """A server-side analysis job as last observed by the tracker."""
    job_id: str
    status: JobStatus = JobStatus.INITIALIZING
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def __post_init__(self):
        """Validate job data."""
        if not self.job_id:
            raise ValueError("job_id cannot be empty")

    def snapshot(self) -> "Job":
        """Return a detached copy safe to hand out to callers."""
        return replace(self, result=dict(self.result) if self.result is not None else None)


# Pydantic DTOs for API responses
class JobDTO(BaseModel):
    """Pydantic model for the tracked job API response."""
    job_id: str = Field(..., alias="jobId")
    status: JobStatus
    display_status: JobStatus = Field(..., alias="displayStatus")
    message: str
    progress: int = Field(..., ge=0, le=100)
    error: Optional[str] = None
    polling: bool = False

    class Config:
        populate_by_name = True
