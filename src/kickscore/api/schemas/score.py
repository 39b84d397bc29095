from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ScoreResponse(BaseModel):
    snapshot_id: int
    player_id: int
    total_score: int
    social_score: int
    performance_score: int
    engagement_score: int
    date: datetime


class RankingEntryResponse(BaseModel):
    rank: int
    player_id: int
    name: str
    club: str
    country: str
    position: str
    score: ScoreResponse
