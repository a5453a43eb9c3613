"""In-memory store for the dashboard session."""
from typing import Optional

from clients.pathtrack import PathtrackClient
from config import (
    DEFAULT_EMBEDDING_MODEL,
    PATHTRACK_API_BASE_URL,
    PATHTRACK_API_KEY,
    PATHTRACK_TIMEOUT_SEC,
)
from dashboard.orchestrator import DashboardOrchestrator

# The dashboard session served by the API (created on first use)
_ORCHESTRATOR: Optional[DashboardOrchestrator] = None


def get_orchestrator() -> DashboardOrchestrator:
    """Return the current session, creating one backed by the PathTrack API if needed."""
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        client = PathtrackClient(PATHTRACK_API_BASE_URL, PATHTRACK_API_KEY, PATHTRACK_TIMEOUT_SEC)
        _ORCHESTRATOR = DashboardOrchestrator(client, model=DEFAULT_EMBEDDING_MODEL)
    return _ORCHESTRATOR


def set_orchestrator(orchestrator: DashboardOrchestrator) -> None:
    """Replace the current session (used by tests to inject fake backends)."""
    global _ORCHESTRATOR
    _ORCHESTRATOR = orchestrator


def reset_orchestrator() -> None:
    """Drop the current session, cancelling any polling it owns."""
    global _ORCHESTRATOR
    if _ORCHESTRATOR is not None:
        _ORCHESTRATOR.tracker.cancel()
    _ORCHESTRATOR = None
