import pytest
from httpx import ASGITransport, AsyncClient

from kickscore.api import create_app
from kickscore.config import Settings
from kickscore.models import MetricsSnapshot
from kickscore.persistence import MemoryStore
from kickscore.scoring import compute_scores


def _seeded_store() -> MemoryStore:
    store = MemoryStore()
    players = [
        ("Erling Haaland", "Manchester City", MetricsSnapshot(goals=36, assists=8, instagram_followers=40_000_000, fan_engagement=0.8)),
        ("Martin Odegaard", "Arsenal", MetricsSnapshot(goals=8, assists=10, instagram_followers=8_000_000, fan_engagement=0.6)),
        ("Reserve Keeper", "Arsenal", MetricsSnapshot(instagram_followers=1_000, fan_engagement=0.1)),
    ]
    for name, club, metrics in players:
        player = store.add_player(name=name, club=club, position="Forward")
        store.upsert_stats(player.player_id, metrics)
        store.append(player.player_id, compute_scores(metrics))
    store.add_player(name="Unsigned Trialist")
    return store


@pytest.fixture
async def client():
    settings = Settings(refresh_delay_seconds=0.0, min_interval_minutes=15, default_interval_minutes=60)
    app = create_app(settings, _seeded_store())
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        async_client.app = app
        yield async_client
    app.state.scheduler.stop()
    app.state.jobs.shutdown(wait=True)


@pytest.mark.anyio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_refresh_player_queues_job(client: AsyncClient):
    resp = await client.post("/refresh/player/1")
    assert resp.status_code == 202
    job = resp.json()
    assert job["kind"] == "refresh_one"
    assert job["player_id"] == 1

    client.app.state.jobs.wait(job["job_id"], timeout=5)
    resp = await client.get(f"/jobs/{job['job_id']}")
    assert resp.status_code == 200
    assert resp.json()["state"] == "completed"

    history = (await client.get("/players/1/scores")).json()
    assert len(history) == 2


@pytest.mark.anyio
async def test_refresh_unknown_player_is_404(client: AsyncClient):
    resp = await client.post("/refresh/player/999")
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_refresh_all_counts_failures(client: AsyncClient):
    resp = await client.post("/refresh/all")
    assert resp.status_code == 202
    job_id = resp.json()["job_id"]

    done = client.app.state.jobs.wait(job_id, timeout=5)
    assert done.state == "completed"
    assert done.result["total"] == 4
    assert done.result["updated"] == 3
    assert done.result["failed"] == 1

    jobs = (await client.get("/jobs")).json()
    assert [job["job_id"] for job in jobs] == [job_id]


@pytest.mark.anyio
async def test_unknown_job_is_404(client: AsyncClient):
    assert (await client.get("/jobs/nope")).status_code == 404
    assert (await client.post("/jobs/nope/cancel")).status_code == 404


@pytest.mark.anyio
async def test_cancel_finished_job_returns_it_unchanged(client: AsyncClient):
    job_id = (await client.post("/refresh/player/2")).json()["job_id"]
    client.app.state.jobs.wait(job_id, timeout=5)

    resp = await client.post(f"/jobs/{job_id}/cancel")
    assert resp.status_code == 200
    assert resp.json()["state"] == "completed"


@pytest.mark.anyio
async def test_schedule_lifecycle(client: AsyncClient):
    status = (await client.get("/schedule")).json()
    assert status["state"] == "stopped"
    assert status["min_interval_minutes"] == 15

    resp = await client.post("/schedule/start", json={"interval_minutes": 30})
    assert resp.status_code == 202
    body = resp.json()
    assert body["running"] is True
    assert body["interval_minutes"] == 30

    resp = await client.post("/schedule/start", json={"interval_minutes": 45})
    assert resp.json()["interval_minutes"] == 45

    resp = await client.post("/schedule/stop")
    assert resp.status_code == 200
    assert resp.json()["state"] == "stopped"

    resp = await client.post("/schedule/stop")
    assert resp.json()["state"] == "stopped"


@pytest.mark.anyio
async def test_schedule_start_uses_default_interval(client: AsyncClient):
    resp = await client.post("/schedule/start")
    assert resp.status_code == 202
    assert resp.json()["interval_minutes"] == 60


@pytest.mark.anyio
@pytest.mark.parametrize("interval", [5, 0])
async def test_schedule_start_rejects_short_interval(client: AsyncClient, interval):
    resp = await client.post("/schedule/start", json={"interval_minutes": interval})
    assert resp.status_code == 400
    assert "at least 15" in resp.json()["detail"]
    assert (await client.get("/schedule")).json()["running"] is False


@pytest.mark.anyio
async def test_run_now_queues_batch(client: AsyncClient):
    resp = await client.post("/schedule/run-now")
    assert resp.status_code == 202
    body = resp.json()
    assert body["schedule"]["running"] is False
    assert body["schedule"]["fire_count"] == 1
    assert body["job"]["kind"] == "refresh_all"
    assert body["job"]["trigger"] == "run_now"
    client.app.state.jobs.wait(body["job"]["job_id"], timeout=5)


@pytest.mark.anyio
async def test_rankings_sorted_by_total(client: AsyncClient):
    resp = await client.get("/rankings")
    assert resp.status_code == 200
    entries = resp.json()
    assert [entry["rank"] for entry in entries] == [1, 2, 3]
    assert entries[0]["name"] == "Erling Haaland"
    totals = [entry["score"]["total_score"] for entry in entries]
    assert totals == sorted(totals, reverse=True)

    resp = await client.get("/rankings", params={"sort_by": "engagement_score", "limit": 1})
    assert [entry["name"] for entry in resp.json()] == ["Erling Haaland"]

    resp = await client.get("/rankings", params={"sort_by": "salary"})
    assert resp.status_code == 400


@pytest.mark.anyio
async def test_top_players_by_category(client: AsyncClient):
    resp = await client.get("/top-players/performance", params={"limit": 2})
    assert resp.status_code == 200
    assert [entry["name"] for entry in resp.json()] == ["Erling Haaland", "Martin Odegaard"]

    assert (await client.get("/top-players/popularity")).status_code == 400
    assert (await client.get("/top-players/social", params={"limit": 0})).status_code == 400


@pytest.mark.anyio
async def test_latest_score(client: AsyncClient):
    resp = await client.get("/players/1/scores/latest")
    assert resp.status_code == 200
    assert resp.json()["player_id"] == 1

    assert (await client.get("/players/4/scores/latest")).status_code == 404
    assert (await client.get("/players/999/scores/latest")).status_code == 404


@pytest.mark.anyio
async def test_score_history_window(client: AsyncClient):
    resp = await client.get("/players/1/scores", params={"since": "2999-01-01T00:00:00"})
    assert resp.status_code == 200
    assert resp.json() == []

    resp = await client.get("/players/1/scores", params={"until": "2999-01-01T00:00:00Z"})
    assert len(resp.json()) == 1


@pytest.mark.anyio
async def test_patch_stats_recomputes_scores(client: AsyncClient):
    resp = await client.patch("/players/2/stats", json={"goals": 25, "fanEngagement": 0.9})
    assert resp.status_code == 200
    body = resp.json()
    assert body["performance_score"] == 100
    assert body["engagement_score"] == 90

    latest = (await client.get("/players/2/scores/latest")).json()
    assert latest["snapshot_id"] == body["snapshot_id"]


@pytest.mark.anyio
async def test_patch_stats_errors(client: AsyncClient):
    assert (await client.patch("/players/999/stats", json={"goals": 1})).status_code == 404
    assert (await client.patch("/players/4/stats", json={"goals": 1})).status_code == 404
    assert (await client.patch("/players/1/stats", json={"fan_engagement": 1.5})).status_code == 422
    assert (await client.patch("/players/1/stats", json={"salary": 1})).status_code == 422
