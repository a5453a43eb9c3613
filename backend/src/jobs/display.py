"""User-facing presentation of job status."""
from typing import Dict, Tuple

from models.job import JobStatus

# status -> (progress percent, message)
STATUS_PROGRESS: Dict[JobStatus, Tuple[int, str]] = {
    JobStatus.INITIALIZING: (5, "Preparing sequence..."),
    JobStatus.QUEUED: (10, "Waiting in queue..."),
    JobStatus.PROCESSING: (60, "Analysis in progress..."),
    JobStatus.COMPLETED: (100, "Analysis complete!"),
    JobStatus.FAILED: (100, "Analysis failed."),
}


def display_status(
    remote_status: JobStatus,
    elapsed_sec: float,
    simulated_delay_sec: float = 0.0,
) -> JobStatus:
    """
    Status shown to the user, optionally holding completion back for a while.

    With a simulated delay the displayed status stays PROCESSING until the
    delay has elapsed since tracking started, even if the remote job already
    completed. The remote status itself is never altered.

    Args:
        remote_status: Status last reported by the remote side
        elapsed_sec: Seconds since tracking of the job started
        simulated_delay_sec: Minimum time before COMPLETED is displayed (0 disables)

    Returns:
        JobStatus to display
    """
    if (
        simulated_delay_sec > 0
        and remote_status == JobStatus.COMPLETED
        and elapsed_sec < simulated_delay_sec
    ):
        return JobStatus.PROCESSING
    return remote_status


def progress_for(status: JobStatus) -> Tuple[int, str]:
    """Return (progress percent, message) for a displayed status."""
    return STATUS_PROGRESS[status]
