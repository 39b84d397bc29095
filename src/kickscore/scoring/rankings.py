"""Order players by the latest snapshot of a chosen score."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from kickscore.models import Player, ScoreSnapshot


SORT_KEYS: tuple[str, ...] = ("total_score", "social_score", "performance_score", "engagement_score")

CATEGORY_SORT_KEYS: dict[str, str] = {
    "social": "social_score",
    "performance": "performance_score",
    "engagement": "engagement_score",
    "total": "total_score",
}


@dataclass(frozen=True)
class RankedPlayer:
    rank: int
    player: Player
    score: ScoreSnapshot


def rank_snapshots(
    entries: Iterable[tuple[Player, ScoreSnapshot]],
    *,
    sort_by: str = "total_score",
    limit: Optional[int] = None,
) -> List[RankedPlayer]:
    """Sort (player, latest snapshot) pairs descending by ``sort_by``.

    Ties fall back to the player id so the ordering is stable across calls.
    """

    if sort_by not in SORT_KEYS:
        raise KeyError(f"Unsupported sort key {sort_by!r}")
    ordered = sorted(
        entries,
        key=lambda item: (-getattr(item[1], sort_by), item[0].player_id),
    )
    if limit is not None:
        ordered = ordered[: max(0, limit)]
    return [RankedPlayer(rank=index, player=player, score=score) for index, (player, score) in enumerate(ordered, start=1)]
