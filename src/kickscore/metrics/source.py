"""Metric sources that produce fresh scoring inputs for a player.

No live social-media API is queried. ``SimulatedMetricSource`` drifts the
stored follower counts and engagement ratio by a small random amount on each
refresh, mimicking organic growth, and writes the drifted values back to the
stats row.
"""

from __future__ import annotations

import logging
import random
import time
from typing import Optional, Protocol

from kickscore.errors import MissingStatsError, TransientSourceError
from kickscore.models import MetricsSnapshot, Player
from kickscore.persistence import PlayerStore


logger = logging.getLogger(__name__)

FOLLOWER_FIELDS = ("instagram_followers", "facebook_followers", "twitter_followers")


class MetricSource(Protocol):
    def refresh_metrics(self, player: Player) -> MetricsSnapshot: ...


class StoredMetricSource:
    """Return the stored stats unchanged."""

    def __init__(self, store: PlayerStore):
        self._store = store

    def refresh_metrics(self, player: Player) -> MetricsSnapshot:
        stats = self._store.get_stats(player.player_id)
        if stats is None:
            raise MissingStatsError(player.player_id)
        return MetricsSnapshot.from_stats(stats)


class SimulatedMetricSource:
    """Emulate an external refresh by drifting stored social metrics.

    Each follower count grows by up to ``follower_growth`` (a fraction) and the
    engagement ratio moves by up to +/- ``engagement_jitter``, then is clamped
    to [0, 1]. ``failure_rate`` is the probability of raising
    :class:`TransientSourceError` instead of returning data.
    """

    def __init__(
        self,
        store: PlayerStore,
        *,
        rng: Optional[random.Random] = None,
        latency_seconds: float = 0.0,
        follower_growth: float = 0.02,
        engagement_jitter: float = 0.005,
        failure_rate: float = 0.0,
    ):
        if follower_growth < 0 or engagement_jitter < 0:
            raise ValueError("follower_growth and engagement_jitter must be non-negative")
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be within [0, 1]")
        self._store = store
        self._rng = rng or random.Random()
        self.latency_seconds = max(0.0, latency_seconds)
        self.follower_growth = follower_growth
        self.engagement_jitter = engagement_jitter
        self.failure_rate = failure_rate

    def refresh_metrics(self, player: Player) -> MetricsSnapshot:
        current = self._store.get_stats(player.player_id)
        if current is None:
            raise MissingStatsError(player.player_id)

        if self.latency_seconds:
            time.sleep(self.latency_seconds)
        if self.failure_rate and self._rng.random() < self.failure_rate:
            raise TransientSourceError(player.player_id, "simulated source failure")

        growth = 1 + self._rng.random() * self.follower_growth
        changes: dict[str, float | int] = {
            name: int(getattr(current, name) * growth) for name in FOLLOWER_FIELDS
        }
        drift = 1 + self._rng.uniform(-self.engagement_jitter, self.engagement_jitter)
        changes["fan_engagement"] = max(0.0, min(1.0, current.fan_engagement * drift))

        updated = self._store.update_stats(player.player_id, changes)
        logger.debug(
            "Refreshed social metrics for %s: followers %d -> %d",
            player.name,
            current.total_followers,
            updated.total_followers,
        )
        return MetricsSnapshot.from_stats(updated)
