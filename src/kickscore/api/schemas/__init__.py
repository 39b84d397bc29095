"""Pydantic models for API I/O."""

from .refresh import JobResponse, RunNowResponse, ScheduleStartRequest, ScheduleStatusResponse
from .score import RankingEntryResponse, ScoreResponse

__all__ = [
    "JobResponse",
    "RankingEntryResponse",
    "RunNowResponse",
    "ScheduleStartRequest",
    "ScheduleStatusResponse",
    "ScoreResponse",
]
