import random

import pytest

from kickscore.errors import MissingStatsError, TransientSourceError
from kickscore.metrics import SimulatedMetricSource, StoredMetricSource
from kickscore.models import MetricsSnapshot
from kickscore.persistence import MemoryStore


@pytest.fixture
def seeded_store():
    store = MemoryStore()
    player = store.add_player(name="Bukayo Saka", club="Arsenal")
    store.upsert_stats(
        player.player_id,
        MetricsSnapshot(
            goals=16,
            assists=9,
            instagram_followers=1_000_000,
            facebook_followers=200_000,
            twitter_followers=500_000,
            fan_engagement=0.8,
        ),
    )
    return store, player


def test_simulated_source_drifts_followers_upward(seeded_store):
    store, player = seeded_store
    source = SimulatedMetricSource(store, rng=random.Random(7), follower_growth=0.05)

    metrics = source.refresh_metrics(player)

    assert 1_000_000 <= metrics.instagram_followers <= 1_050_000
    assert 200_000 <= metrics.facebook_followers <= 210_000
    assert 500_000 <= metrics.twitter_followers <= 525_000
    assert metrics.goals == 16
    assert metrics.assists == 9
    assert 0.0 <= metrics.fan_engagement <= 1.0
    assert abs(metrics.fan_engagement - 0.8) <= 0.8 * 0.005 + 1e-9
    assert store.get_stats(player.player_id).instagram_followers == metrics.instagram_followers


def test_simulated_source_is_reproducible_with_seed(seeded_store):
    store, player = seeded_store
    other = MemoryStore()
    twin = other.add_player(name=player.name)
    other.upsert_stats(twin.player_id, MetricsSnapshot.from_stats(store.get_stats(player.player_id)))

    first = SimulatedMetricSource(store, rng=random.Random(42)).refresh_metrics(player)
    second = SimulatedMetricSource(other, rng=random.Random(42)).refresh_metrics(twin)

    assert first.model_dump(exclude={"player_id"}) == second.model_dump(exclude={"player_id"})


def test_engagement_never_exceeds_one():
    store = MemoryStore()
    player = store.add_player(name="Maxed Out")
    store.upsert_stats(player.player_id, MetricsSnapshot(fan_engagement=1.0))
    source = SimulatedMetricSource(store, rng=random.Random(1), engagement_jitter=0.5)

    for _ in range(20):
        assert source.refresh_metrics(player).fan_engagement <= 1.0


def test_missing_stats_raise():
    store = MemoryStore()
    player = store.add_player(name="No Stats")

    with pytest.raises(MissingStatsError):
        SimulatedMetricSource(store).refresh_metrics(player)
    with pytest.raises(MissingStatsError):
        StoredMetricSource(store).refresh_metrics(player)


def test_failure_rate_one_always_fails_without_writing(seeded_store):
    store, player = seeded_store
    before = store.get_stats(player.player_id)
    source = SimulatedMetricSource(store, failure_rate=1.0)

    with pytest.raises(TransientSourceError):
        source.refresh_metrics(player)
    assert store.get_stats(player.player_id) == before


def test_stored_source_returns_current_stats(seeded_store):
    store, player = seeded_store

    metrics = StoredMetricSource(store).refresh_metrics(player)

    assert metrics.instagram_followers == 1_000_000
    assert metrics.player_id == player.player_id


@pytest.mark.parametrize(
    "kwargs",
    [{"failure_rate": 1.5}, {"failure_rate": -0.1}, {"follower_growth": -1.0}, {"engagement_jitter": -0.01}],
)
def test_invalid_source_configuration(kwargs):
    with pytest.raises(ValueError):
        SimulatedMetricSource(MemoryStore(), **kwargs)
