"""Persistence layer for players, stats, score snapshots and refresh jobs."""

from __future__ import annotations

import logging

from kickscore.config import Settings

from .base import (
    JOB_STATES,
    TERMINAL_JOB_STATES,
    JobStore,
    PlayerStore,
    RefreshJob,
    ScoreStore,
    Store,
)
from .memory import MemoryStore
from .sqlite import SqliteStore


logger = logging.getLogger(__name__)


def create_store(settings: Settings) -> Store:
    """Instantiate the backend named by ``settings.store_backend``."""

    if settings.store_backend == "sqlite":
        logger.info("Using SQLite store at %s", settings.db_path)
        return SqliteStore(settings.db_path)
    if settings.store_backend == "memory":
        return MemoryStore()
    raise ValueError(f"Unsupported store backend {settings.store_backend!r}")


__all__ = [
    "JOB_STATES",
    "TERMINAL_JOB_STATES",
    "JobStore",
    "MemoryStore",
    "PlayerStore",
    "RefreshJob",
    "ScoreStore",
    "SqliteStore",
    "Store",
    "create_store",
]
