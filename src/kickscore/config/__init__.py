"""Configuration helpers for runtime settings and scoring weights."""

from .settings import STORE_BACKENDS, Settings, load_settings
from .weights import DEFAULT_WEIGHTS, ScoringWeights

__all__ = [
    "DEFAULT_WEIGHTS",
    "STORE_BACKENDS",
    "ScoringWeights",
    "Settings",
    "load_settings",
]
