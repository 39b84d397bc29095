"""Command-line interface for seeding players, refreshing scores and ranking."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

from kickscore.config import STORE_BACKENDS, load_settings
from kickscore.errors import KickscoreError
from kickscore.ingest import import_players, load_seed_csv
from kickscore.metrics import SimulatedMetricSource
from kickscore.persistence import create_store
from kickscore.refresh import RefreshOrchestrator
from kickscore.scoring import SORT_KEYS, rank_snapshots


logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compute and rank football player influence scores")
    parser.add_argument("--store", choices=STORE_BACKENDS, default=None, help="Store backend (default from KICKSCORE_STORE)")
    parser.add_argument("--db-path", type=Path, default=None, help="SQLite database path")
    parser.add_argument("--log-level", default="INFO", help="Logging level (e.g., DEBUG, INFO)")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Import players and stats from a CSV")
    seed.add_argument("csv", type=Path, help="Path to players CSV")
    seed.add_argument(
        "--column",
        action="append",
        default=[],
        help="Mapping for CSV columns (e.g., instagram_followers=ig)",
    )

    refresh = sub.add_parser("refresh", help="Refresh one player or every player")
    target = refresh.add_mutually_exclusive_group(required=True)
    target.add_argument("--player", type=int, help="Player id to refresh")
    target.add_argument("--all", action="store_true", help="Refresh every player")
    refresh.add_argument("--seed-csv", type=Path, default=None, help="Import this CSV first")

    rankings = sub.add_parser("rankings", help="Print players ranked by score")
    rankings.add_argument("--sort-by", choices=SORT_KEYS, default="total_score")
    rankings.add_argument("--limit", type=int, default=10)
    rankings.add_argument("--seed-csv", type=Path, default=None, help="Import this CSV first")
    rankings.add_argument("--json", action="store_true", help="Emit JSON instead of a table")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    return parser.parse_args(argv)


def _parse_mapping(entries: list[str]) -> dict[str, str]:
    mapping: dict[str, str] = {}
    for entry in entries:
        if "=" not in entry:
            raise ValueError(f"Invalid mapping entry '{entry}', expected key=value")
        key, value = entry.split("=", 1)
        mapping[key.strip()] = value.strip()
    return mapping


def _seed(store, path: Path, mapping: dict[str, str] | None = None) -> None:
    report = import_players(store, load_seed_csv(path, mapping or None))
    print(f"Imported {report.scored} players ({report.created} new, {report.updated} updated)")
    for error in report.errors:
        print(f"  error: {error}")


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {}
    if args.store:
        overrides["store_backend"] = args.store
    if args.db_path:
        overrides["db_path"] = args.db_path
    settings = load_settings().with_overrides(**overrides)

    if args.command == "serve":
        import uvicorn

        from kickscore.api import create_app

        uvicorn.run(create_app(settings), host=args.host, port=args.port)
        return 0

    store = create_store(settings)
    try:
        if args.command == "seed":
            _seed(store, args.csv, _parse_mapping(args.column))
            return 0

        if args.seed_csv:
            _seed(store, args.seed_csv)

        if args.command == "refresh":
            source = SimulatedMetricSource(
                store,
                latency_seconds=settings.source_latency_seconds,
                failure_rate=settings.source_failure_rate,
            )
            orchestrator = RefreshOrchestrator(store, source, delay_seconds=settings.refresh_delay_seconds)
            if args.all:
                batch = orchestrator.refresh_all(trigger="cli")
                print(json.dumps(batch.summary(), indent=2))
                return 0 if batch.failed == 0 else 1
            snapshot = orchestrator.refresh_one(args.player)
            print(json.dumps(snapshot.model_dump(mode="json"), indent=2))
            return 0

        ranked = rank_snapshots(store.latest_scores(), sort_by=args.sort_by, limit=args.limit)
        if args.json:
            payload = [
                {"rank": entry.rank, "name": entry.player.name, **entry.score.values().model_dump()}
                for entry in ranked
            ]
            print(json.dumps(payload, indent=2))
            return 0
        for entry in ranked:
            score = entry.score
            print(
                f"{entry.rank:>3}. {entry.player.name:<28} total={score.total_score:>3} "
                f"social={score.social_score:>3} performance={score.performance_score:>3} "
                f"engagement={score.engagement_score:>3}"
            )
        return 0
    except (KickscoreError, ValueError) as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
