"""REST API exposing refresh triggers, schedule control and rankings."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, HTTPException, Query

from kickscore.api.schemas import (
    JobResponse,
    RankingEntryResponse,
    RunNowResponse,
    ScheduleStartRequest,
    ScheduleStatusResponse,
    ScoreResponse,
)
from kickscore.config import Settings, load_settings
from kickscore.errors import MissingStatsError, PlayerNotFoundError, ValidationError
from kickscore.metrics import SimulatedMetricSource
from kickscore.models import ScoreSnapshot, StatsUpdate
from kickscore.persistence import RefreshJob, Store, create_store
from kickscore.refresh import RefreshJobRunner, RefreshOrchestrator, Scheduler, SchedulerStatus
from kickscore.scoring import CATEGORY_SORT_KEYS, SORT_KEYS, RankedPlayer, rank_snapshots


logger = logging.getLogger(__name__)


def job_to_dict(job: RefreshJob) -> dict:
    return {
        "job_id": job.job_id,
        "kind": job.kind,
        "trigger": job.trigger,
        "state": job.state,
        "player_id": job.player_id,
        "message": job.message,
        "result": job.result,
        "created_at": job.created_at.isoformat(),
        "updated_at": job.updated_at.isoformat(),
        "cancel_requested_at": job.cancel_requested_at.isoformat() if job.cancel_requested_at else None,
        "completed_at": job.completed_at.isoformat() if job.completed_at else None,
    }


def schedule_to_response(status: SchedulerStatus) -> ScheduleStatusResponse:
    return ScheduleStatusResponse(state=status.state, **asdict(status))


def snapshot_to_response(snapshot: ScoreSnapshot) -> ScoreResponse:
    return ScoreResponse.model_validate(snapshot.model_dump())


def ranked_to_response(entry: RankedPlayer) -> RankingEntryResponse:
    return RankingEntryResponse(
        rank=entry.rank,
        player_id=entry.player.player_id,
        name=entry.player.name,
        club=entry.player.club,
        country=entry.player.country,
        position=entry.player.position,
        score=snapshot_to_response(entry.score),
    )


def build_services(settings: Settings, store: Store) -> tuple[RefreshOrchestrator, RefreshJobRunner, Scheduler]:
    """Wire the refresh pipeline around ``store`` using ``settings``."""

    source = SimulatedMetricSource(
        store,
        latency_seconds=settings.source_latency_seconds,
        failure_rate=settings.source_failure_rate,
    )
    orchestrator = RefreshOrchestrator(store, source, delay_seconds=settings.refresh_delay_seconds)
    jobs = RefreshJobRunner(orchestrator, store, max_workers=settings.job_workers)
    scheduler = Scheduler(
        lambda reason: jobs.submit_refresh_all(trigger=reason),
        cancel=orchestrator.cancel_active,
        min_interval_minutes=settings.min_interval_minutes,
    )
    return orchestrator, jobs, scheduler


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    settings = settings or load_settings()
    store = store if store is not None else create_store(settings)
    orchestrator, jobs, scheduler = build_services(settings, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if settings.autostart_scheduler:
            logger.info("Autostarting scheduler every %d minutes", settings.default_interval_minutes)
            scheduler.start(settings.default_interval_minutes)
        try:
            yield
        finally:
            scheduler.stop()
            jobs.shutdown(wait=False)

    app = FastAPI(title="kickscore", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.orchestrator = orchestrator
    app.state.jobs = jobs
    app.state.scheduler = scheduler

    def _fetch_player_or_404(player_id: int):
        player = store.get_by_id(player_id)
        if player is None:
            raise HTTPException(status_code=404, detail="Player not found")
        return player

    def _fetch_job_or_404(job_id: str) -> RefreshJob:
        job = jobs.get(job_id)
        if job is None:
            raise HTTPException(status_code=404, detail="Job not found")
        return job

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    # refresh triggers --------------------------------------------------

    @app.post("/refresh/player/{player_id}", status_code=202, response_model=JobResponse)
    async def refresh_player(player_id: int):
        _fetch_player_or_404(player_id)
        job = jobs.submit_refresh_one(player_id)
        return job_to_dict(job)

    @app.post("/refresh/all", status_code=202, response_model=JobResponse)
    async def refresh_all():
        job = jobs.submit_refresh_all(trigger="manual")
        return job_to_dict(job)

    @app.get("/jobs")
    async def list_jobs(limit: int = Query(50, ge=1, le=500)) -> list[JobResponse]:
        return [JobResponse.model_validate(job_to_dict(job)) for job in jobs.list(limit=limit)]

    @app.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(job_id: str):
        return job_to_dict(_fetch_job_or_404(job_id))

    @app.post("/jobs/{job_id}/cancel", response_model=JobResponse)
    async def cancel_job(job_id: str):
        _fetch_job_or_404(job_id)
        return job_to_dict(jobs.cancel(job_id))

    # schedule ----------------------------------------------------------

    @app.get("/schedule", response_model=ScheduleStatusResponse)
    async def schedule_status():
        return schedule_to_response(scheduler.status())

    @app.post("/schedule/start", status_code=202, response_model=ScheduleStatusResponse)
    async def schedule_start(payload: Optional[ScheduleStartRequest] = None):
        interval = payload.interval_minutes if payload is not None else None
        if interval is None:
            interval = settings.default_interval_minutes
        try:
            status = scheduler.start(interval)
        except ValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return schedule_to_response(status)

    @app.post("/schedule/stop", response_model=ScheduleStatusResponse)
    async def schedule_stop():
        return schedule_to_response(scheduler.stop())

    @app.post("/schedule/run-now", status_code=202, response_model=RunNowResponse)
    async def schedule_run_now():
        job = scheduler.run_now()
        return RunNowResponse(
            schedule=schedule_to_response(scheduler.status()),
            job=JobResponse.model_validate(job_to_dict(job)) if job is not None else None,
        )

    # scores ------------------------------------------------------------

    @app.get("/players/{player_id}/scores", response_model=list[ScoreResponse])
    async def player_scores(
        player_id: int,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ):
        _fetch_player_or_404(player_id)
        history = store.get_history(player_id, since=since, until=until)
        return [snapshot_to_response(item) for item in history]

    @app.get("/players/{player_id}/scores/latest", response_model=ScoreResponse)
    async def player_latest_score(player_id: int):
        _fetch_player_or_404(player_id)
        snapshot = store.get_latest(player_id)
        if snapshot is None:
            raise HTTPException(status_code=404, detail="Player score not found")
        return snapshot_to_response(snapshot)

    @app.patch("/players/{player_id}/stats", response_model=ScoreResponse)
    async def update_player_stats(player_id: int, payload: StatsUpdate):
        try:
            snapshot = orchestrator.apply_stats_update(player_id, payload)
        except (PlayerNotFoundError, MissingStatsError) as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValidationError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return snapshot_to_response(snapshot)

    @app.get("/rankings", response_model=list[RankingEntryResponse])
    async def rankings(sort_by: str = "total_score", limit: int = 100):
        if sort_by not in SORT_KEYS:
            raise HTTPException(status_code=400, detail=f"Invalid sort_by {sort_by!r}")
        ranked = rank_snapshots(store.latest_scores(), sort_by=sort_by, limit=limit)
        return [ranked_to_response(entry) for entry in ranked]

    @app.get("/top-players/{category}", response_model=list[RankingEntryResponse])
    async def top_players(category: str, limit: int = 5):
        sort_by = CATEGORY_SORT_KEYS.get(category)
        if sort_by is None:
            raise HTTPException(status_code=400, detail="Invalid category")
        if limit <= 0:
            raise HTTPException(status_code=400, detail="Invalid limit")
        ranked = rank_snapshots(store.latest_scores(), sort_by=sort_by, limit=limit)
        return [ranked_to_response(entry) for entry in ranked]

    return app


__all__ = ["build_services", "create_app", "job_to_dict"]
