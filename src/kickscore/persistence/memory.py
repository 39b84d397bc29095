"""In-memory store used by tests and the default development setup."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from itertools import count
from typing import Any, Dict, List, Mapping, Optional, Tuple

from kickscore.errors import MissingStatsError, PlayerNotFoundError
from kickscore.models import MetricsSnapshot, Player, PlayerStats, ScoreSnapshot, ScoreValues

from .base import TERMINAL_JOB_STATES, RefreshJob, as_utc, check_job_state, merge_stats


class MemoryStore:
    """Thread-safe dict-backed implementation of the store interfaces."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._players: Dict[int, Player] = {}
        self._stats: Dict[int, PlayerStats] = {}
        self._scores: Dict[int, List[ScoreSnapshot]] = {}
        self._jobs: Dict[str, RefreshJob] = {}
        self._player_ids = count(1)
        self._snapshot_ids = count(1)

    # players -----------------------------------------------------------

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
    ) -> Player:
        with self._lock:
            player = Player(
                player_id=next(self._player_ids),
                name=name,
                club=club,
                country=country,
                position=position,
                instagram_url=instagram_url,
                twitter_url=twitter_url,
                facebook_url=facebook_url,
            )
            self._players[player.player_id] = player
            return player

    def get_all(self) -> List[Player]:
        with self._lock:
            return sorted(self._players.values(), key=lambda player: player.player_id)

    def get_by_id(self, player_id: int) -> Optional[Player]:
        with self._lock:
            return self._players.get(player_id)

    def find_by_name(self, name: str) -> Optional[Player]:
        with self._lock:
            for player in self._players.values():
                if player.name == name:
                    return player
        return None

    # stats -------------------------------------------------------------

    def get_stats(self, player_id: int) -> Optional[PlayerStats]:
        with self._lock:
            return self._stats.get(player_id)

    def upsert_stats(self, player_id: int, metrics: MetricsSnapshot) -> PlayerStats:
        with self._lock:
            if player_id not in self._players:
                raise PlayerNotFoundError(player_id)
            payload = metrics.model_dump()
            payload["player_id"] = player_id
            stats = PlayerStats.model_validate(payload)
            self._stats[player_id] = stats
            return stats

    def update_stats(self, player_id: int, changes: Mapping[str, Any]) -> PlayerStats:
        with self._lock:
            current = self._stats.get(player_id)
            if current is None:
                raise MissingStatsError(player_id)
            stats = merge_stats(current, changes, updated_at=datetime.now(timezone.utc))
            self._stats[player_id] = stats
            return stats

    # scores ------------------------------------------------------------

    def append(self, player_id: int, values: ScoreValues) -> ScoreSnapshot:
        with self._lock:
            history = self._scores.setdefault(player_id, [])
            now = datetime.now(timezone.utc)
            if history and history[-1].date > now:
                now = history[-1].date
            snapshot = ScoreSnapshot(
                snapshot_id=next(self._snapshot_ids),
                player_id=player_id,
                date=now,
                **values.model_dump(),
            )
            history.append(snapshot)
            return snapshot

    def get_latest(self, player_id: int) -> Optional[ScoreSnapshot]:
        with self._lock:
            history = self._scores.get(player_id)
            return history[-1] if history else None

    def get_history(
        self,
        player_id: int,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[ScoreSnapshot]:
        with self._lock:
            history = list(self._scores.get(player_id, []))
        since, until = as_utc(since), as_utc(until)
        if since is not None:
            history = [item for item in history if item.date >= since]
        if until is not None:
            history = [item for item in history if item.date <= until]
        return history

    def latest_scores(self) -> List[Tuple[Player, ScoreSnapshot]]:
        with self._lock:
            return [
                (player, self._scores[player_id][-1])
                for player_id, player in sorted(self._players.items())
                if self._scores.get(player_id)
            ]

    # jobs --------------------------------------------------------------

    def create_job(
        self,
        *,
        job_id: str,
        kind: str,
        trigger: str,
        player_id: Optional[int] = None,
        state: str = "queued",
        message: Optional[str] = None,
    ) -> RefreshJob:
        check_job_state(state)
        now = datetime.now(timezone.utc)
        job = RefreshJob(
            job_id=job_id,
            kind=kind,
            trigger=trigger,
            state=state,
            player_id=player_id,
            created_at=now,
            updated_at=now,
            message=message,
        )
        with self._lock:
            self._jobs[job_id] = job
        return replace(job)

    def update_job_state(
        self,
        job_id: str,
        *,
        state: str,
        message: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> RefreshJob:
        check_job_state(state)
        now = datetime.now(timezone.utc)
        with self._lock:
            existing = self._jobs.get(job_id)
            if existing is None:
                raise KeyError(f"Job {job_id} not found")
            job = replace(
                existing,
                state=state,
                updated_at=now,
                message=message if message is not None else existing.message,
                result=dict(result) if result is not None else existing.result,
                cancel_requested_at=now if state == "cancel_requested" else existing.cancel_requested_at,
                completed_at=now if state in TERMINAL_JOB_STATES else existing.completed_at,
            )
            self._jobs[job_id] = job
            return replace(job)

    def get_job(self, job_id: str) -> Optional[RefreshJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job else None

    def list_jobs(self, limit: int = 50) -> List[RefreshJob]:
        with self._lock:
            jobs = sorted(self._jobs.values(), key=lambda job: job.created_at, reverse=True)
            return [replace(job) for job in jobs[:limit]]
