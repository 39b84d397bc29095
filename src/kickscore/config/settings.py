"""Environment-driven runtime settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path


logger = logging.getLogger(__name__)

_STORE_ENV = "KICKSCORE_STORE"
_DB_PATH_ENV = "KICKSCORE_DB_PATH"
_REFRESH_DELAY_ENV = "KICKSCORE_REFRESH_DELAY"
_MIN_INTERVAL_ENV = "KICKSCORE_MIN_INTERVAL"
_DEFAULT_INTERVAL_ENV = "KICKSCORE_DEFAULT_INTERVAL"
_SOURCE_LATENCY_ENV = "KICKSCORE_SOURCE_LATENCY"
_SOURCE_FAILURE_ENV = "KICKSCORE_SOURCE_FAILURE_RATE"
_JOB_WORKERS_ENV = "KICKSCORE_JOB_WORKERS"
_AUTOSTART_ENV = "KICKSCORE_AUTOSTART"

STORE_BACKENDS = ("memory", "sqlite")


def _env_float(name: str, default: float, *, clamp_min: float | None = None, clamp_max: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Invalid float for %s: %s; using default %.2f", name, raw, default)
        return default
    if clamp_min is not None:
        value = max(clamp_min, value)
    if clamp_max is not None:
        value = min(clamp_max, value)
    return value


def _env_int(name: str, default: int, *, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid int for %s: %s; using default %d", name, raw, default)
        return default
    if min_value is not None:
        value = max(min_value, value)
    return value


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    store_backend: str = "memory"
    db_path: Path = Path("kickscore.sqlite")
    refresh_delay_seconds: float = 0.2
    min_interval_minutes: int = 15
    default_interval_minutes: int = 60
    source_latency_seconds: float = 0.0
    source_failure_rate: float = 0.0
    job_workers: int = 2
    autostart_scheduler: bool = False

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)


def load_settings() -> Settings:
    """Build settings from ``KICKSCORE_*`` environment variables."""

    backend = os.getenv(_STORE_ENV, "memory").strip().lower()
    if backend not in STORE_BACKENDS:
        logger.warning("Unknown store backend %s; using memory", backend)
        backend = "memory"
    min_interval = _env_int(_MIN_INTERVAL_ENV, 15, min_value=1)
    return Settings(
        store_backend=backend,
        db_path=Path(os.getenv(_DB_PATH_ENV, "kickscore.sqlite")),
        refresh_delay_seconds=_env_float(_REFRESH_DELAY_ENV, 0.2, clamp_min=0.0),
        min_interval_minutes=min_interval,
        default_interval_minutes=_env_int(_DEFAULT_INTERVAL_ENV, 60, min_value=min_interval),
        source_latency_seconds=_env_float(_SOURCE_LATENCY_ENV, 0.0, clamp_min=0.0),
        source_failure_rate=_env_float(_SOURCE_FAILURE_ENV, 0.0, clamp_min=0.0, clamp_max=1.0),
        job_workers=_env_int(_JOB_WORKERS_ENV, 2, min_value=1),
        autostart_scheduler=_env_bool(_AUTOSTART_ENV, False),
    )
