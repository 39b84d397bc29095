"""Player, stats and metrics models shared across the refresh pipeline."""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


COUNT_FIELDS = (
    "goals",
    "assists",
    "yellow_cards",
    "red_cards",
    "instagram_followers",
    "facebook_followers",
    "twitter_followers",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Player(BaseModel):
    """Catalog entry for a player; owned by the player store."""

    player_id: int
    name: str = Field(..., min_length=1)
    club: str = ""
    country: str = ""
    position: str = ""
    instagram_url: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)


class MetricsSnapshot(BaseModel):
    """Raw scoring inputs for one player at one refresh cycle.

    ``fan_engagement`` is a ratio in [0, 1]. Missing, ``None`` or NaN numeric
    inputs are read as 0.
    """

    player_id: int = 0
    goals: int = Field(0, ge=0)
    assists: int = Field(0, ge=0)
    yellow_cards: int = Field(0, ge=0)
    red_cards: int = Field(0, ge=0)
    instagram_followers: int = Field(0, ge=0)
    facebook_followers: int = Field(0, ge=0)
    twitter_followers: int = Field(0, ge=0)
    fan_engagement: float = Field(0.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    @field_validator(*COUNT_FIELDS, "fan_engagement", mode="before")
    @classmethod
    def _missing_as_zero(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, float) and math.isnan(value):
            return 0
        return value

    @property
    def total_followers(self) -> int:
        return self.instagram_followers + self.facebook_followers + self.twitter_followers

    @classmethod
    def from_stats(cls, stats: "PlayerStats") -> "MetricsSnapshot":
        return cls.model_validate(stats.model_dump(exclude={"updated_at"}))


class PlayerStats(MetricsSnapshot):
    """Stored stats row; updated in place by the metric source."""

    updated_at: datetime = Field(default_factory=_utcnow)


class StatsUpdate(BaseModel):
    """Partial stats change; unset fields keep their stored values."""

    goals: Optional[int] = Field(None, ge=0)
    assists: Optional[int] = Field(None, ge=0)
    yellow_cards: Optional[int] = Field(None, ge=0)
    red_cards: Optional[int] = Field(None, ge=0)
    instagram_followers: Optional[int] = Field(None, ge=0)
    facebook_followers: Optional[int] = Field(None, ge=0)
    twitter_followers: Optional[int] = Field(None, ge=0)
    fan_engagement: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="forbid")

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
