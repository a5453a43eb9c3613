"""Dashboard session orchestration."""
from dashboard.models import Notice, NoticeDTO, NoticeLevel
from dashboard.orchestrator import DashboardOrchestrator

__all__ = [
    "Notice",
    "NoticeDTO",
    "NoticeLevel",
    "DashboardOrchestrator",
]
