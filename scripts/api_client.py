"""Lightweight REST client for the kickscore API."""

from __future__ import annotations

import argparse
import json
import time

import httpx


def print_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def wait_for_job(client: httpx.Client, job_id: str, timeout: float) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        resp = client.get(f"/jobs/{job_id}")
        resp.raise_for_status()
        job = resp.json()
        if job["completed_at"] is not None or time.monotonic() >= deadline:
            return job
        time.sleep(0.5)


def main() -> None:
    parser = argparse.ArgumentParser(description="Interact with the kickscore REST API")
    parser.add_argument("base_url", help="Base URL of the API, e.g. http://localhost:8000")
    parser.add_argument("--refresh-player", type=int, metavar="PLAYER_ID", help="Queue a single-player refresh")
    parser.add_argument("--refresh-all", action="store_true", help="Queue a refresh of every player")
    parser.add_argument("--start-schedule", type=int, metavar="MINUTES", help="Start periodic refreshes")
    parser.add_argument("--stop-schedule", action="store_true", help="Stop periodic refreshes")
    parser.add_argument("--run-now", action="store_true", help="Trigger one scheduled refresh immediately")
    parser.add_argument("--cancel-job", metavar="JOB_ID", help="Request cancellation of a job")
    parser.add_argument("--list-jobs", action="store_true", help="List recent refresh jobs")
    parser.add_argument("--rankings", action="store_true", help="Print current rankings")
    parser.add_argument("--sort-by", default="total_score", help="Ranking sort key")
    parser.add_argument("--limit", type=int, default=10, help="Number of ranked players")
    parser.add_argument("--wait", type=float, default=0.0, help="Seconds to wait for queued jobs to finish")
    args = parser.parse_args()

    with httpx.Client(base_url=args.base_url) as client:
        queued: list[dict] = []
        if args.refresh_player is not None:
            resp = client.post(f"/refresh/player/{args.refresh_player}")
            if resp.status_code == 404:
                raise SystemExit(f"player {args.refresh_player} not found")
            resp.raise_for_status()
            queued.append(resp.json())
        if args.refresh_all:
            resp = client.post("/refresh/all")
            resp.raise_for_status()
            queued.append(resp.json())
        if args.start_schedule is not None:
            resp = client.post("/schedule/start", json={"interval_minutes": args.start_schedule})
            if resp.status_code == 400:
                raise SystemExit(resp.json()["detail"])
            resp.raise_for_status()
            print("Schedule:", json.dumps(resp.json(), indent=2))
        if args.run_now:
            resp = client.post("/schedule/run-now")
            resp.raise_for_status()
            payload = resp.json()
            if payload["job"] is not None:
                queued.append(payload["job"])
        if args.stop_schedule:
            resp = client.post("/schedule/stop")
            resp.raise_for_status()
            print("Schedule:", json.dumps(resp.json(), indent=2))
        if args.cancel_job:
            resp = client.post(f"/jobs/{args.cancel_job}/cancel")
            if resp.status_code == 404:
                raise SystemExit(f"job {args.cancel_job} not found")
            resp.raise_for_status()
            print_json(resp.json())

        for job in queued:
            if args.wait > 0:
                job = wait_for_job(client, job["job_id"], args.wait)
            print(f"Job {job['job_id']} ({job['kind']}): {job['state']}")
            if job.get("message"):
                print(f"  {job['message']}")

        if args.list_jobs:
            resp = client.get("/jobs")
            resp.raise_for_status()
            print_json(resp.json())
        if args.rankings:
            resp = client.get("/rankings", params={"sort_by": args.sort_by, "limit": args.limit})
            if resp.status_code == 400:
                raise SystemExit(resp.json()["detail"])
            resp.raise_for_status()
            for entry in resp.json():
                score = entry["score"]
                print(f"{entry['rank']:>3}. {entry['name']:<28} {args.sort_by}={score[args.sort_by]}")


if __name__ == "__main__":
    main()
