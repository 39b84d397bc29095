"""Single-player and bulk recomputation of influence scores."""

from __future__ import annotations

import enum
import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from kickscore.config.weights import DEFAULT_WEIGHTS, ScoringWeights
from kickscore.errors import (
    KickscoreError,
    MissingStatsError,
    PlayerNotFoundError,
    RefreshInProgressError,
    ValidationError,
)
from kickscore.metrics import MetricSource, StoredMetricSource
from kickscore.models import ScoreSnapshot, StatsUpdate
from kickscore.persistence import Store
from kickscore.scoring import compute_scores


logger = logging.getLogger(__name__)


class PlayerRefreshState(str, enum.Enum):
    UNCHANGED = "unchanged"
    METRICS_REFRESHED = "metrics_refreshed"
    SCORE_COMPUTED = "score_computed"
    PERSISTED = "persisted"
    FAILED = "failed"


@dataclass
class PlayerRefreshResult:
    player_id: int
    state: PlayerRefreshState = PlayerRefreshState.UNCHANGED
    snapshot: Optional[ScoreSnapshot] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is PlayerRefreshState.PERSISTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "state": self.state.value,
            "total_score": self.snapshot.total_score if self.snapshot else None,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class BatchResult:
    total: int = 0
    updated: int = 0
    canceled: bool = False
    results: List[PlayerRefreshResult] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.results if item.state is PlayerRefreshState.FAILED)

    @property
    def skipped(self) -> int:
        return self.total - len(self.results)

    def summary(self) -> dict[str, Any]:
        return {
            "updated": self.updated,
            "total": self.total,
            "failed": self.failed,
            "skipped": self.skipped,
            "canceled": self.canceled,
        }

    def to_dict(self) -> dict[str, Any]:
        payload = self.summary()
        payload["results"] = [item.to_dict() for item in self.results]
        return payload


class RefreshOrchestrator:
    """Drive metric refresh, scoring and snapshot persistence for players.

    Only one bulk refresh may run at a time; a second call raises
    :class:`RefreshInProgressError`. Within a batch players are processed
    sequentially with ``delay_seconds`` between them, and a per-player lock
    keeps single-player refreshes from interleaving with the batch on the same
    player.
    """

    def __init__(
        self,
        store: Store,
        source: MetricSource,
        *,
        delay_seconds: float = 0.2,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ):
        self.store = store
        self.source = source
        self.delay_seconds = max(0.0, delay_seconds)
        self.weights = weights
        self._stored_source = StoredMetricSource(store)
        self._batch_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._active_cancel: Optional[threading.Event] = None
        self._player_locks: Dict[int, threading.RLock] = defaultdict(threading.RLock)

    @property
    def busy(self) -> bool:
        return self._batch_lock.locked()

    def _player_lock(self, player_id: int) -> threading.RLock:
        with self._state_lock:
            return self._player_locks[player_id]

    def _refresh(self, player_id: int, result: PlayerRefreshResult, source: MetricSource) -> ScoreSnapshot:
        with self._player_lock(player_id):
            player = self.store.get_by_id(player_id)
            if player is None:
                raise PlayerNotFoundError(player_id)
            metrics = source.refresh_metrics(player)
            result.state = PlayerRefreshState.METRICS_REFRESHED
            values = compute_scores(metrics, self.weights)
            result.state = PlayerRefreshState.SCORE_COMPUTED
            snapshot = self.store.append(player_id, values)
            result.state = PlayerRefreshState.PERSISTED
            result.snapshot = snapshot
            logger.info(
                "Updated influence scores for %s (id=%s): total=%s",
                player.name,
                player_id,
                snapshot.total_score,
            )
            return snapshot

    def refresh_one(self, player_id: int, *, drift: bool = True) -> ScoreSnapshot:
        """Refresh one player's metrics and append a new score snapshot.

        Raises :class:`PlayerNotFoundError`, :class:`MissingStatsError` or
        :class:`TransientSourceError`; nothing is persisted on failure.
        """

        source = self.source if drift else self._stored_source
        return self._refresh(player_id, PlayerRefreshResult(player_id), source)

    def try_refresh_one(self, player_id: int, *, drift: bool = True) -> PlayerRefreshResult:
        """Like :meth:`refresh_one` but reports failures instead of raising."""

        result = PlayerRefreshResult(player_id)
        source = self.source if drift else self._stored_source
        try:
            self._refresh(player_id, result, source)
        except KickscoreError as exc:
            result.state = PlayerRefreshState.FAILED
            result.error = str(exc)
            result.error_type = type(exc).__name__
            logger.warning("Skipping player %s: %s", player_id, exc)
        except Exception as exc:  # noqa: BLE001
            result.state = PlayerRefreshState.FAILED
            result.error = str(exc) or type(exc).__name__
            result.error_type = type(exc).__name__
            logger.exception("Unexpected error refreshing player %s", player_id)
        return result

    def refresh_all(self, *, cancel_event: Optional[threading.Event] = None, trigger: str = "manual") -> BatchResult:
        """Refresh every known player, tolerating per-player failures."""

        if not self._batch_lock.acquire(blocking=False):
            raise RefreshInProgressError()
        cancel_event = cancel_event or threading.Event()
        with self._state_lock:
            self._active_cancel = cancel_event
        try:
            players = self.store.get_all()
            batch = BatchResult(total=len(players))
            logger.info("Starting %s refresh of %d players", trigger, len(players))
            for index, player in enumerate(players):
                if cancel_event.is_set():
                    batch.canceled = True
                    logger.info("Refresh canceled after %d of %d players", index, len(players))
                    break
                result = self.try_refresh_one(player.player_id)
                batch.results.append(result)
                if result.ok:
                    batch.updated += 1
                if self.delay_seconds and index < len(players) - 1:
                    # Waiting on the cancel token lets stop() cut the delay short.
                    cancel_event.wait(self.delay_seconds)
            logger.info(
                "Refresh completed. Updated %d of %d players successfully (%d failed)",
                batch.updated,
                batch.total,
                batch.failed,
            )
            return batch
        finally:
            with self._state_lock:
                self._active_cancel = None
            self._batch_lock.release()

    def cancel_active(self) -> bool:
        """Request cancellation of the running batch; False when idle."""

        with self._state_lock:
            event = self._active_cancel
        if event is None:
            return False
        event.set()
        return True

    def apply_stats_update(self, player_id: int, changes: Mapping[str, Any] | StatsUpdate) -> ScoreSnapshot:
        """Write edited stats and recompute the player's scores from them."""

        if self.store.get_by_id(player_id) is None:
            raise PlayerNotFoundError(player_id)
        if isinstance(changes, StatsUpdate):
            update = changes
        else:
            try:
                update = StatsUpdate.model_validate(dict(changes))
            except PydanticValidationError as exc:
                raise ValidationError(str(exc)) from exc
        with self._player_lock(player_id):
            if self.store.get_stats(player_id) is None:
                raise MissingStatsError(player_id)
            self.store.update_stats(player_id, update.changes())
            # Reentrant, so no refresh can land between the write and this recompute.
            return self.refresh_one(player_id, drift=False)
