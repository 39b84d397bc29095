"""Background execution of refresh work with persisted job records."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from kickscore.errors import KickscoreError, RefreshInProgressError
from kickscore.persistence import TERMINAL_JOB_STATES, JobStore, RefreshJob

from .orchestrator import RefreshOrchestrator


logger = logging.getLogger(__name__)

JobOutcome = Tuple[str, Optional[str], Optional[dict]]


class RefreshJobRunner:
    """Submit refreshes to a thread pool and track them as jobs.

    Every submission returns the queued :class:`RefreshJob` immediately; the
    caller polls :meth:`get` (or blocks on :meth:`wait`) for the outcome.
    """

    def __init__(self, orchestrator: RefreshOrchestrator, store: JobStore, *, max_workers: int = 2):
        self.orchestrator = orchestrator
        self.store = store
        self._executor = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="kickscore-refresh")
        self._lock = threading.Lock()
        self._futures: Dict[str, Future] = {}
        self._cancel_events: Dict[str, threading.Event] = {}

    def submit_refresh_one(self, player_id: int, *, trigger: str = "manual") -> RefreshJob:
        job = self.store.create_job(job_id=uuid4().hex, kind="refresh_one", trigger=trigger, player_id=player_id)
        self._submit(job.job_id, lambda cancel: self._run_one(player_id))
        return job

    def submit_refresh_all(self, *, trigger: str = "manual") -> RefreshJob:
        job = self.store.create_job(job_id=uuid4().hex, kind="refresh_all", trigger=trigger)
        self._submit(job.job_id, lambda cancel: self._run_all(trigger, cancel))
        return job

    def _submit(self, job_id: str, work: Callable[[threading.Event], JobOutcome]) -> None:
        cancel = threading.Event()
        with self._lock:
            self._cancel_events[job_id] = cancel
            self._futures[job_id] = self._executor.submit(self._guarded, job_id, work, cancel)

    def _guarded(self, job_id: str, work: Callable[[threading.Event], JobOutcome], cancel: threading.Event) -> None:
        if cancel.is_set():
            self._finish(job_id, "canceled", "Canceled before start", None)
            return
        self.store.update_job_state(job_id, state="running")
        try:
            outcome = work(cancel)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Refresh job %s failed", job_id)
            outcome = ("failed", str(exc) or type(exc).__name__, None)
        self._finish(job_id, *outcome)

    def _finish(self, job_id: str, state: str, message: Optional[str], result: Optional[dict]) -> None:
        # Final write and deregistration happen together so cancel() never
        # overwrites a terminal state.
        with self._lock:
            self._cancel_events.pop(job_id, None)
            self._futures.pop(job_id, None)
            self.store.update_job_state(job_id, state=state, message=message, result=result)

    def _run_one(self, player_id: int) -> JobOutcome:
        try:
            snapshot = self.orchestrator.refresh_one(player_id)
        except KickscoreError as exc:
            logger.warning("Refresh of player %s failed: %s", player_id, exc)
            return "failed", str(exc), {"player_id": player_id, "error_type": type(exc).__name__}
        return (
            "completed",
            f"Player {player_id} total score {snapshot.total_score}",
            snapshot.model_dump(mode="json"),
        )

    def _run_all(self, trigger: str, cancel: threading.Event) -> JobOutcome:
        try:
            batch = self.orchestrator.refresh_all(cancel_event=cancel, trigger=trigger)
        except RefreshInProgressError as exc:
            logger.info("Skipping %s refresh: %s", trigger, exc.message)
            return "skipped", exc.message, None
        state = "canceled" if batch.canceled else "completed"
        return state, f"Updated {batch.updated} of {batch.total} players", batch.to_dict()

    def get(self, job_id: str) -> Optional[RefreshJob]:
        return self.store.get_job(job_id)

    def list(self, limit: int = 50) -> List[RefreshJob]:
        return self.store.list_jobs(limit=limit)

    def cancel(self, job_id: str) -> RefreshJob:
        """Request cancellation; finished jobs are returned unchanged."""

        with self._lock:
            job = self.store.get_job(job_id)
            if job is None:
                raise KeyError(f"Job {job_id} not found")
            cancel = self._cancel_events.get(job_id)
            if cancel is None or job.state in TERMINAL_JOB_STATES:
                return job
            cancel.set()
            return self.store.update_job_state(job_id, state="cancel_requested", message="Cancellation requested")

    def wait(self, job_id: str, timeout: Optional[float] = None) -> RefreshJob:
        """Block until the job finishes or ``timeout`` passes; finished jobs come from the store."""

        with self._lock:
            future = self._futures.get(job_id)
        if future is not None:
            try:
                future.result(timeout=timeout)
            except FutureTimeoutError:
                logger.debug("Timed out waiting for job %s", job_id)
        job = self.store.get_job(job_id)
        if job is None:
            raise KeyError(f"Job {job_id} not found")
        return job

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            events = list(self._cancel_events.values())
        for event in events:
            event.set()
        self._executor.shutdown(wait=wait)
