"""Point values and sub-score weights for the influence score."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ScoringWeights:
    # Composite weights; must sum to 1.0.
    social_weight: float = 0.4
    performance_weight: float = 0.4
    engagement_weight: float = 0.2

    # log10(100M followers) is about 8, which maps to the full follower share.
    follower_log_ceiling: float = 8.0
    follower_points: float = 80.0
    engagement_points: float = 20.0

    goal_points: float = 5.0
    assist_points: float = 3.0
    yellow_card_points: float = -1.0
    red_card_points: float = -3.0

    def __post_init__(self) -> None:
        total = self.social_weight + self.performance_weight + self.engagement_weight
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Composite weights must sum to 1.0, got {total:.4f}")
        if self.follower_log_ceiling <= 0:
            raise ValueError("follower_log_ceiling must be positive")


DEFAULT_WEIGHTS = ScoringWeights()
