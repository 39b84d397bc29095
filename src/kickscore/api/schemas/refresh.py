from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class JobResponse(BaseModel):
    job_id: str
    kind: str
    trigger: str
    state: str
    player_id: Optional[int] = None
    message: Optional[str] = None
    result: dict[str, Any] = {}
    created_at: datetime
    updated_at: datetime
    cancel_requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class ScheduleStartRequest(BaseModel):
    interval_minutes: Optional[int] = None


class ScheduleStatusResponse(BaseModel):
    state: str
    running: bool
    interval_minutes: Optional[int] = None
    min_interval_minutes: int
    fire_count: int
    last_fired_at: Optional[datetime] = None
    next_run_at: Optional[datetime] = None


class RunNowResponse(BaseModel):
    schedule: ScheduleStatusResponse
    job: Optional[JobResponse] = None
