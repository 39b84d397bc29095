"""Store interfaces consumed by the refresh pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Protocol, Tuple, runtime_checkable

from kickscore.models import MetricsSnapshot, Player, PlayerStats, ScoreSnapshot, ScoreValues


JOB_STATES = ("queued", "running", "completed", "failed", "skipped", "cancel_requested", "canceled")
TERMINAL_JOB_STATES = frozenset({"completed", "failed", "skipped", "canceled"})


@dataclass
class RefreshJob:
    job_id: str
    kind: str
    trigger: str
    state: str
    player_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    message: Optional[str] = None
    result: dict = field(default_factory=dict)
    cancel_requested_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_JOB_STATES


@runtime_checkable
class PlayerStore(Protocol):
    def add_player(
        self,
        *,
        name: str,
        club: str = "",
        country: str = "",
        position: str = "",
        instagram_url: Optional[str] = None,
        twitter_url: Optional[str] = None,
        facebook_url: Optional[str] = None,
    ) -> Player: ...

    def get_all(self) -> List[Player]: ...

    def get_by_id(self, player_id: int) -> Optional[Player]: ...

    def find_by_name(self, name: str) -> Optional[Player]: ...

    def get_stats(self, player_id: int) -> Optional[PlayerStats]: ...

    def upsert_stats(self, player_id: int, metrics: MetricsSnapshot) -> PlayerStats: ...

    def update_stats(self, player_id: int, changes: Mapping[str, Any]) -> PlayerStats: ...


@runtime_checkable
class ScoreStore(Protocol):
    def append(self, player_id: int, values: ScoreValues) -> ScoreSnapshot: ...

    def get_latest(self, player_id: int) -> Optional[ScoreSnapshot]: ...

    def get_history(
        self,
        player_id: int,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[ScoreSnapshot]: ...

    def latest_scores(self) -> List[Tuple[Player, ScoreSnapshot]]: ...


@runtime_checkable
class JobStore(Protocol):
    def create_job(
        self,
        *,
        job_id: str,
        kind: str,
        trigger: str,
        player_id: Optional[int] = None,
        state: str = "queued",
        message: Optional[str] = None,
    ) -> RefreshJob: ...

    def update_job_state(
        self,
        job_id: str,
        *,
        state: str,
        message: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> RefreshJob: ...

    def get_job(self, job_id: str) -> Optional[RefreshJob]: ...

    def list_jobs(self, limit: int = 50) -> List[RefreshJob]: ...


@runtime_checkable
class Store(PlayerStore, ScoreStore, JobStore, Protocol):
    """Everything the application needs from a single backing store."""


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Read naive datetimes as UTC; aware ones are converted to UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def merge_stats(current: PlayerStats, changes: Mapping[str, Any], *, updated_at: datetime) -> PlayerStats:
    """Apply a partial change to a stats row, re-validating the result."""

    payload = current.model_dump()
    unknown = set(changes) - (set(payload) - {"player_id", "updated_at"})
    if unknown:
        raise KeyError(f"Unknown stats fields: {', '.join(sorted(unknown))}")
    payload.update(changes)
    payload["updated_at"] = updated_at
    return PlayerStats.model_validate(payload)


def check_job_state(state: str) -> None:
    if state not in JOB_STATES:
        raise ValueError(f"Unknown job state {state!r}")
