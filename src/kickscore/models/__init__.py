"""Canonical models shared across the scoring, storage and API layers."""

from .player import COUNT_FIELDS, MetricsSnapshot, Player, PlayerStats, StatsUpdate
from .score import ScoreSnapshot, ScoreValues

__all__ = [
    "COUNT_FIELDS",
    "MetricsSnapshot",
    "Player",
    "PlayerStats",
    "ScoreSnapshot",
    "ScoreValues",
    "StatsUpdate",
]
