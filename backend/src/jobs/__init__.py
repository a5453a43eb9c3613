"""Analysis job lifecycle tracking."""
from jobs.display import display_status, progress_for
from jobs.tracker import JobTracker, PollingTask

__all__ = [
    "display_status",
    "progress_for",
    "JobTracker",
    "PollingTask",
]
