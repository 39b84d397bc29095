"""Refresh pipeline: orchestration, background jobs and scheduling."""

from .jobs import RefreshJobRunner
from .orchestrator import BatchResult, PlayerRefreshResult, PlayerRefreshState, RefreshOrchestrator
from .scheduler import Scheduler, SchedulerStatus

__all__ = [
    "BatchResult",
    "PlayerRefreshResult",
    "PlayerRefreshState",
    "RefreshJobRunner",
    "RefreshOrchestrator",
    "Scheduler",
    "SchedulerStatus",
]
