"""SQLite-backed store for players, stats, score snapshots and refresh jobs."""

from __future__ import annotations

import json
import sqlite3
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from kickscore.errors import MissingStatsError, PlayerNotFoundError
from kickscore.models import MetricsSnapshot, Player, PlayerStats, ScoreSnapshot, ScoreValues

from .base import TERMINAL_JOB_STATES, RefreshJob, as_utc, check_job_state, merge_stats


_STATS_COLUMNS = (
    "goals",
    "assists",
    "yellow_cards",
    "red_cards",
    "instagram_followers",
    "facebook_followers",
    "twitter_followers",
    "fan_engagement",
)


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _iso(value: datetime) -> str:
    # Fixed-width UTC timestamps keep lexical and chronological order aligned.
    return as_utc(value).isoformat(timespec="microseconds")


class SqliteStore:
    """Simple SQLite-backed store; one connection per operation."""

    def __init__(self, db_path: Path | str):
        self._use_uri = isinstance(db_path, str) and db_path.startswith("file:")
        self.db_path: Path | str = db_path if self._use_uri else Path(db_path)
        # Serializes read-modify-write sequences (stats merges, snapshot dates).
        self._write_lock = threading.Lock()
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                conn = sqlite3.connect(self.db_path)
            except sqlite3.OperationalError:
                fallback_dir = Path(tempfile.gettempdir()) / "kickscore-runtime"
                fallback_dir.mkdir(parents=True, exist_ok=True)
                fallback = fallback_dir / "kickscore.sqlite"
                conn = sqlite3.connect(fallback)
                self.db_path = fallback
                self._create_schema(conn)
        else:
            conn = sqlite3.connect(self.db_path, uri=self._use_uri)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            self._create_schema(conn)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS players (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                club TEXT NOT NULL DEFAULT '',
                country TEXT NOT NULL DEFAULT '',
                position TEXT NOT NULL DEFAULT '',
                instagram_url TEXT,
                twitter_url TEXT,
                facebook_url TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS player_stats (
                player_id INTEGER PRIMARY KEY REFERENCES players(id),
                goals INTEGER NOT NULL DEFAULT 0,
                assists INTEGER NOT NULL DEFAULT 0,
                yellow_cards INTEGER NOT NULL DEFAULT 0,
                red_cards INTEGER NOT NULL DEFAULT 0,
                instagram_followers INTEGER NOT NULL DEFAULT 0,
                facebook_followers INTEGER NOT NULL DEFAULT 0,
                twitter_followers INTEGER NOT NULL DEFAULT 0,
                fan_engagement REAL NOT NULL DEFAULT 0,
                updated_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS scores (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                player_id INTEGER NOT NULL REFERENCES players(id),
                total_score INTEGER NOT NULL,
                social_score INTEGER NOT NULL,
                performance_score INTEGER NOT NULL,
                engagement_score INTEGER NOT NULL,
                date TEXT NOT NULL
            )
            """
        )
        conn.execute("CREATE INDEX IF NOT EXISTS idx_scores_player_date ON scores (player_id, date)")
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS refresh_jobs (
                id TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                trigger_name TEXT NOT NULL,
                state TEXT NOT NULL,
                player_id INTEGER,
                message TEXT,
                result_json TEXT NOT NULL DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                cancel_requested_at TEXT,
                completed_at TEXT
            )
            """
        )
        conn.commit()

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
        created_at = datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO players (
                    name, club, country, position, instagram_url, twitter_url, facebook_url, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (name, club, country, position, instagram_url, twitter_url, facebook_url, _iso(created_at)),
            )
            conn.commit()
            player_id = cur.lastrowid
        player = self.get_by_id(player_id)
        if player is None:  # pragma: no cover
            raise KeyError(f"Player {player_id} not found after insert")
        return player

    def get_all(self) -> List[Player]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM players ORDER BY id").fetchall()
        return [self._row_to_player(row) for row in rows]

    def get_by_id(self, player_id: int) -> Optional[Player]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_player(row)

    def find_by_name(self, name: str) -> Optional[Player]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM players WHERE name = ? ORDER BY id LIMIT 1", (name,)).fetchone()
            if row is None:
                return None
            return self._row_to_player(row)

    # stats -------------------------------------------------------------

    def get_stats(self, player_id: int) -> Optional[PlayerStats]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM player_stats WHERE player_id = ?", (player_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_stats(row)

    def upsert_stats(self, player_id: int, metrics: MetricsSnapshot) -> PlayerStats:
        if self.get_by_id(player_id) is None:
            raise PlayerNotFoundError(player_id)
        payload = metrics.model_dump()
        payload["player_id"] = player_id
        stats = PlayerStats.model_validate(payload)
        with self._write_lock:
            self._write_stats(stats)
        return stats

    def update_stats(self, player_id: int, changes: Mapping[str, Any]) -> PlayerStats:
        with self._write_lock:
            current = self.get_stats(player_id)
            if current is None:
                raise MissingStatsError(player_id)
            stats = merge_stats(current, changes, updated_at=datetime.now(timezone.utc))
            self._write_stats(stats)
        return stats

    def _write_stats(self, stats: PlayerStats) -> None:
        columns = ", ".join(_STATS_COLUMNS)
        placeholders = ", ".join("?" for _ in _STATS_COLUMNS)
        updates = ", ".join(f"{column} = excluded.{column}" for column in _STATS_COLUMNS)
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO player_stats (player_id, {columns}, updated_at)
                VALUES (?, {placeholders}, ?)
                ON CONFLICT(player_id) DO UPDATE SET {updates}, updated_at = excluded.updated_at
                """,
                (
                    stats.player_id,
                    *(getattr(stats, column) for column in _STATS_COLUMNS),
                    _iso(stats.updated_at),
                ),
            )
            conn.commit()

    # scores ------------------------------------------------------------

    def append(self, player_id: int, values: ScoreValues) -> ScoreSnapshot:
        with self._write_lock:
            latest = self.get_latest(player_id)
            now = datetime.now(timezone.utc)
            if latest is not None and latest.date > now:
                now = latest.date
            with self._connect() as conn:
                cur = conn.execute(
                    """
                    INSERT INTO scores (
                        player_id, total_score, social_score, performance_score, engagement_score, date
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        player_id,
                        values.total_score,
                        values.social_score,
                        values.performance_score,
                        values.engagement_score,
                        _iso(now),
                    ),
                )
                conn.commit()
                snapshot_id = cur.lastrowid
        return ScoreSnapshot(snapshot_id=snapshot_id, player_id=player_id, date=now, **values.model_dump())

    def get_latest(self, player_id: int) -> Optional[ScoreSnapshot]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM scores WHERE player_id = ? ORDER BY date DESC, id DESC LIMIT 1",
                (player_id,),
            ).fetchone()
            if row is None:
                return None
            return self._row_to_snapshot(row)

    def get_history(
        self,
        player_id: int,
        *,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[ScoreSnapshot]:
        query = "SELECT * FROM scores WHERE player_id = ?"
        params: list[Any] = [player_id]
        if since is not None:
            query += " AND date >= ?"
            params.append(_iso(since))
        if until is not None:
            query += " AND date <= ?"
            params.append(_iso(until))
        query += " ORDER BY date ASC, id ASC"
        with self._connect() as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def latest_scores(self) -> List[Tuple[Player, ScoreSnapshot]]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT p.*, s.id AS snapshot_id, s.total_score, s.social_score,
                       s.performance_score, s.engagement_score, s.date
                FROM players p
                JOIN scores s ON s.id = (
                    SELECT id FROM scores WHERE player_id = p.id ORDER BY date DESC, id DESC LIMIT 1
                )
                ORDER BY p.id
                """
            ).fetchall()
        return [
            (
                self._row_to_player(row),
                ScoreSnapshot(
                    snapshot_id=row["snapshot_id"],
                    player_id=row["id"],
                    total_score=row["total_score"],
                    social_score=row["social_score"],
                    performance_score=row["performance_score"],
                    engagement_score=row["engagement_score"],
                    date=datetime.fromisoformat(row["date"]),
                ),
            )
            for row in rows
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
        now_iso = _iso(datetime.now(timezone.utc))
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO refresh_jobs (
                    id, kind, trigger_name, state, player_id, message, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (job_id, kind, trigger, state, player_id, message, now_iso, now_iso),
            )
            conn.commit()
        job = self.get_job(job_id)
        if job is None:  # pragma: no cover
            raise KeyError(f"Job {job_id} not found after insert")
        return job

    def update_job_state(
        self,
        job_id: str,
        *,
        state: str,
        message: Optional[str] = None,
        result: Optional[dict] = None,
    ) -> RefreshJob:
        check_job_state(state)
        now_iso = _iso(datetime.now(timezone.utc))
        with self._write_lock, self._connect() as conn:
            existing = conn.execute("SELECT * FROM refresh_jobs WHERE id = ?", (job_id,)).fetchone()
            if existing is None:
                raise KeyError(f"Job {job_id} not found")
            cancel_requested_at = existing["cancel_requested_at"]
            completed_at = existing["completed_at"]
            if state == "cancel_requested":
                cancel_requested_at = now_iso
            if state in TERMINAL_JOB_STATES:
                completed_at = now_iso
            conn.execute(
                """
                UPDATE refresh_jobs
                SET state = ?, message = ?, result_json = ?, updated_at = ?,
                    cancel_requested_at = ?, completed_at = ?
                WHERE id = ?
                """,
                (
                    state,
                    message if message is not None else existing["message"],
                    json.dumps(result) if result is not None else existing["result_json"],
                    now_iso,
                    cancel_requested_at,
                    completed_at,
                    job_id,
                ),
            )
            conn.commit()
        job = self.get_job(job_id)
        if job is None:  # pragma: no cover
            raise KeyError(f"Job {job_id} not found after update")
        return job

    def get_job(self, job_id: str) -> Optional[RefreshJob]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM refresh_jobs WHERE id = ?", (job_id,)).fetchone()
            if row is None:
                return None
            return self._row_to_job(row)

    def list_jobs(self, limit: int = 50) -> List[RefreshJob]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM refresh_jobs ORDER BY created_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [self._row_to_job(row) for row in rows]

    # row mapping -------------------------------------------------------

    def _row_to_player(self, row: sqlite3.Row) -> Player:
        return Player(
            player_id=row["id"],
            name=row["name"],
            club=row["club"],
            country=row["country"],
            position=row["position"],
            instagram_url=row["instagram_url"],
            twitter_url=row["twitter_url"],
            facebook_url=row["facebook_url"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _row_to_stats(self, row: sqlite3.Row) -> PlayerStats:
        payload = {column: row[column] for column in _STATS_COLUMNS}
        return PlayerStats(
            player_id=row["player_id"],
            updated_at=datetime.fromisoformat(row["updated_at"]),
            **payload,
        )

    def _row_to_snapshot(self, row: sqlite3.Row) -> ScoreSnapshot:
        return ScoreSnapshot(
            snapshot_id=row["id"],
            player_id=row["player_id"],
            total_score=row["total_score"],
            social_score=row["social_score"],
            performance_score=row["performance_score"],
            engagement_score=row["engagement_score"],
            date=datetime.fromisoformat(row["date"]),
        )

    def _row_to_job(self, row: sqlite3.Row) -> RefreshJob:
        return RefreshJob(
            job_id=row["id"],
            kind=row["kind"],
            trigger=row["trigger_name"],
            state=row["state"],
            player_id=row["player_id"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            message=row["message"],
            result=json.loads(row["result_json"] or "{}"),
            cancel_requested_at=_parse_ts(row["cancel_requested_at"]),
            completed_at=_parse_ts(row["completed_at"]),
        )
