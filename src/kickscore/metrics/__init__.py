"""Adapters that supply raw per-player scoring inputs."""

from .source import FOLLOWER_FIELDS, MetricSource, SimulatedMetricSource, StoredMetricSource

__all__ = [
    "FOLLOWER_FIELDS",
    "MetricSource",
    "SimulatedMetricSource",
    "StoredMetricSource",
]
