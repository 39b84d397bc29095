"""Score values produced by the calculator and the snapshots that store them."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class ScoreValues(BaseModel):
    social_score: int = Field(..., ge=0, le=100)
    performance_score: int = Field(..., ge=0, le=100)
    engagement_score: int = Field(..., ge=0, le=100)
    total_score: int = Field(..., ge=0, le=100)

    model_config = ConfigDict(frozen=True)


class ScoreSnapshot(ScoreValues):
    """Immutable record appended each time a player's scores are computed."""

    snapshot_id: int
    player_id: int
    date: datetime

    def values(self) -> ScoreValues:
        return ScoreValues(
            social_score=self.social_score,
            performance_score=self.performance_score,
            engagement_score=self.engagement_score,
            total_score=self.total_score,
        )
