"""Pure scoring functions and ranking helpers."""

from .calculator import (
    clamp_score,
    compute_scores,
    engagement_score,
    performance_score,
    round_half_up,
    social_score,
    total_score,
)
from .rankings import CATEGORY_SORT_KEYS, SORT_KEYS, RankedPlayer, rank_snapshots

__all__ = [
    "CATEGORY_SORT_KEYS",
    "SORT_KEYS",
    "RankedPlayer",
    "clamp_score",
    "compute_scores",
    "engagement_score",
    "performance_score",
    "rank_snapshots",
    "round_half_up",
    "social_score",
    "total_score",
]
