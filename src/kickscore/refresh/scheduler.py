"""Recurring trigger for bulk refreshes."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from kickscore.errors import RefreshInProgressError, ValidationError


logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_MINUTES = 15


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    interval_minutes: Optional[int]
    min_interval_minutes: int
    fire_count: int
    last_fired_at: Optional[datetime]
    next_run_at: Optional[datetime]

    @property
    def state(self) -> str:
        return "running" if self.running else "stopped"


class _Timer:
    def __init__(self, interval_minutes: int, interval_seconds: float):
        self.interval_minutes = interval_minutes
        self.interval_seconds = interval_seconds
        self.stopped = threading.Event()
        self.thread: Optional[threading.Thread] = None


class Scheduler:
    """Own a single recurring timer that calls ``trigger``.

    ``start`` fires immediately and then every ``interval_minutes``; starting
    again replaces the active timer. ``stop`` is a no-op when nothing runs.
    ``run_now`` fires once without touching the schedule. ``trigger`` receives
    the reason (``"scheduled"`` or ``"run_now"``). ``cancel`` is called on stop
    to halt an in-flight batch.
    """

    def __init__(
        self,
        trigger: Callable[[str], Any],
        *,
        cancel: Optional[Callable[[], Any]] = None,
        min_interval_minutes: int = DEFAULT_MIN_INTERVAL_MINUTES,
        seconds_per_minute: float = 60.0,
    ):
        if seconds_per_minute <= 0:
            raise ValueError("seconds_per_minute must be positive")
        self._trigger = trigger
        self._cancel = cancel
        self.min_interval_minutes = min_interval_minutes
        self._seconds_per_minute = seconds_per_minute
        self._lock = threading.Lock()
        self._timer: Optional[_Timer] = None
        self._interval_minutes: Optional[int] = None
        self._fire_count = 0
        self._last_fired_at: Optional[datetime] = None
        self._next_run_at: Optional[datetime] = None

    @property
    def running(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _validate_interval(self, interval_minutes: Any) -> int:
        if isinstance(interval_minutes, bool) or not isinstance(interval_minutes, int):
            raise ValidationError(f"Interval must be a whole number of minutes, got {interval_minutes!r}")
        if interval_minutes < self.min_interval_minutes:
            raise ValidationError(
                f"Interval must be at least {self.min_interval_minutes} minutes, got {interval_minutes}"
            )
        return interval_minutes

    def start(self, interval_minutes: int) -> SchedulerStatus:
        interval_minutes = self._validate_interval(interval_minutes)
        self._replace_timer(interval_minutes, fire_immediately=True)
        logger.info("Starting automatic player updates every %d minutes", interval_minutes)
        return self.status()

    def reconfigure(self, interval_minutes: int) -> SchedulerStatus:
        """Change the cadence; a running timer restarts without an immediate fire."""

        interval_minutes = self._validate_interval(interval_minutes)
        if self.running:
            self._replace_timer(interval_minutes, fire_immediately=False)
        else:
            with self._lock:
                self._interval_minutes = interval_minutes
        logger.info("Update interval set to %d minutes", interval_minutes)
        return self.status()

    def stop(self) -> SchedulerStatus:
        with self._lock:
            timer = self._timer
            self._timer = None
            self._next_run_at = None
        if timer is None:
            return self.status()
        timer.stopped.set()
        if self._cancel is not None:
            self._cancel()
        self._join(timer)
        logger.info("Automatic player updates stopped")
        return self.status()

    def run_now(self) -> Any:
        logger.info("Running out-of-band refresh")
        return self._fire("run_now")

    def status(self) -> SchedulerStatus:
        with self._lock:
            return SchedulerStatus(
                running=self._timer is not None,
                interval_minutes=self._interval_minutes,
                min_interval_minutes=self.min_interval_minutes,
                fire_count=self._fire_count,
                last_fired_at=self._last_fired_at,
                next_run_at=self._next_run_at,
            )

    def _replace_timer(self, interval_minutes: int, *, fire_immediately: bool) -> None:
        timer = _Timer(interval_minutes, interval_minutes * self._seconds_per_minute)
        thread = threading.Thread(
            target=self._loop,
            args=(timer, fire_immediately),
            name=f"kickscore-scheduler-{interval_minutes}m",
            daemon=True,
        )
        timer.thread = thread
        with self._lock:
            previous = self._timer
            self._timer = timer
            self._interval_minutes = interval_minutes
            self._next_run_at = datetime.now(timezone.utc) + timedelta(seconds=timer.interval_seconds)
            if previous is not None:
                previous.stopped.set()
            thread.start()
        if previous is not None:
            self._join(previous)

    def _join(self, timer: _Timer) -> None:
        thread = timer.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    def _loop(self, timer: _Timer, fire_immediately: bool) -> None:
        if fire_immediately and not timer.stopped.is_set():
            self._fire("scheduled")
        while not timer.stopped.wait(timer.interval_seconds):
            with self._lock:
                if self._timer is timer:
                    self._next_run_at = datetime.now(timezone.utc) + timedelta(seconds=timer.interval_seconds)
            self._fire("scheduled")

    def _fire(self, reason: str) -> Any:
        with self._lock:
            self._fire_count += 1
            self._last_fired_at = datetime.now(timezone.utc)
        try:
            return self._trigger(reason)
        except RefreshInProgressError as exc:
            logger.info("Skipped %s refresh: %s", reason, exc.message)
        except Exception:  # noqa: BLE001
            logger.exception("Error in %s automatic update", reason)
        return None
