import threading

import pytest

from kickscore.metrics import StoredMetricSource
from kickscore.models import MetricsSnapshot
from kickscore.persistence import MemoryStore
from kickscore.refresh import RefreshJobRunner, RefreshOrchestrator


class GatedSource:
    def __init__(self, store):
        self._inner = StoredMetricSource(store)
        self.entered = threading.Event()
        self.release = threading.Event()

    def refresh_metrics(self, player):
        self.entered.set()
        self.release.wait(timeout=5)
        return self._inner.refresh_metrics(player)


def _store_with_players(count: int = 2) -> MemoryStore:
    store = MemoryStore()
    for index in range(count):
        player = store.add_player(name=f"Winger {index}")
        store.upsert_stats(player.player_id, MetricsSnapshot(goals=3, instagram_followers=5000, fan_engagement=0.3))
    return store


@pytest.fixture
def runner_factory():
    runners = []

    def build(store, source=None, max_workers=2):
        orchestrator = RefreshOrchestrator(store, source or StoredMetricSource(store), delay_seconds=0)
        runner = RefreshJobRunner(orchestrator, store, max_workers=max_workers)
        runners.append(runner)
        return runner

    yield build
    for runner in runners:
        runner.shutdown(wait=True)


def test_refresh_one_job_completes(runner_factory):
    store = _store_with_players(1)
    runner = runner_factory(store)

    job = runner.submit_refresh_one(1)
    assert job.state == "queued"
    assert job.kind == "refresh_one"

    done = runner.wait(job.job_id, timeout=5)
    assert done.state == "completed"
    assert done.result["player_id"] == 1
    assert done.result["total_score"] == store.get_latest(1).total_score
    assert done.completed_at is not None


def test_refresh_one_job_fails_for_unknown_player(runner_factory):
    runner = runner_factory(_store_with_players(1))

    done = runner.wait(runner.submit_refresh_one(42).job_id, timeout=5)

    assert done.state == "failed"
    assert done.result["error_type"] == "PlayerNotFoundError"
    assert "42" in done.message


def test_refresh_all_job_records_batch_summary(runner_factory):
    store = _store_with_players(3)
    runner = runner_factory(store)

    done = runner.wait(runner.submit_refresh_all(trigger="scheduled").job_id, timeout=5)

    assert done.state == "completed"
    assert done.trigger == "scheduled"
    assert done.result["updated"] == 3
    assert done.result["total"] == 3
    assert len(done.result["results"]) == 3
    assert [job.job_id for job in runner.list()] == [done.job_id]


def test_refresh_all_job_skipped_while_batch_running(runner_factory):
    store = _store_with_players(2)
    source = GatedSource(store)
    runner = runner_factory(store, source)

    first = runner.submit_refresh_all()
    assert source.entered.wait(timeout=5)
    second = runner.wait(runner.submit_refresh_all().job_id, timeout=5)

    assert second.state == "skipped"
    assert "already running" in second.message

    source.release.set()
    assert runner.wait(first.job_id, timeout=5).state == "completed"


def test_cancel_running_batch(runner_factory):
    store = _store_with_players(3)
    source = GatedSource(store)
    runner = runner_factory(store, source)

    job = runner.submit_refresh_all()
    assert source.entered.wait(timeout=5)

    requested = runner.cancel(job.job_id)
    assert requested.state == "cancel_requested"
    assert requested.cancel_requested_at is not None

    source.release.set()
    done = runner.wait(job.job_id, timeout=5)
    assert done.state == "canceled"
    assert done.result["canceled"] is True
    assert done.result["updated"] == 1
    assert done.result["skipped"] == 2


def test_cancel_queued_job_never_runs(runner_factory):
    store = _store_with_players(1)
    source = GatedSource(store)
    runner = runner_factory(store, source, max_workers=1)

    blocker = runner.submit_refresh_all()
    assert source.entered.wait(timeout=5)
    queued = runner.submit_refresh_one(1)
    runner.cancel(queued.job_id)
    source.release.set()

    assert runner.wait(blocker.job_id, timeout=5).state == "completed"
    done = runner.wait(queued.job_id, timeout=5)
    assert done.state == "canceled"
    assert done.message == "Canceled before start"
    assert len(store.get_history(1)) == 1


def test_cancel_finished_job_is_unchanged(runner_factory):
    runner = runner_factory(_store_with_players(1))
    done = runner.wait(runner.submit_refresh_one(1).job_id, timeout=5)

    assert runner.cancel(done.job_id).state == "completed"
    with pytest.raises(KeyError):
        runner.cancel("missing")
    assert runner.get("missing") is None


def test_finished_jobs_are_no_longer_tracked(runner_factory):
    store = _store_with_players(2)
    runner = runner_factory(store)

    job_ids = [runner.submit_refresh_one(1).job_id for _ in range(5)]
    job_ids.append(runner.submit_refresh_all().job_id)
    for job_id in job_ids:
        assert runner.wait(job_id, timeout=5).finished

    assert runner._futures == {}
    assert runner._cancel_events == {}
    # Waiting on an untracked job reads its record straight from the store.
    assert runner.wait(job_ids[0], timeout=0.1).state == "completed"
