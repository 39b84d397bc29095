from pathlib import Path

import pytest

from kickscore.errors import ValidationError
from kickscore.ingest import DEFAULT_COLUMNS, SeedRow, import_players, load_seed_csv
from kickscore.persistence import MemoryStore


SEED_CSV = Path(__file__).resolve().parents[1] / "data" / "players.csv"


def _row(**kwargs):
    return SeedRow.from_mapping(kwargs, DEFAULT_COLUMNS)


def test_from_mapping_parses_formatted_numbers():
    row = _row(
        name="Son Heung-min",
        club="Tottenham",
        instagram_followers="12,500,000",
        goals=" 17 ",
        fan_engagement="85%",
        twitter_url="",
    )

    assert row.metrics.instagram_followers == 12_500_000
    assert row.metrics.goals == 17
    assert row.metrics.fan_engagement == pytest.approx(0.85)
    assert row.metrics.assists == 0
    assert row.twitter_url is None


def test_engagement_over_one_read_as_percent():
    assert _row(name="A", fan_engagement="72").metrics.fan_engagement == pytest.approx(0.72)
    assert _row(name="B", fan_engagement="0.72").metrics.fan_engagement == pytest.approx(0.72)


def test_custom_column_mapping():
    mapping = {**DEFAULT_COLUMNS, "instagram_followers": "ig", "name": "Player"}

    row = SeedRow.from_mapping({"Player": "Pedri", "ig": "9000"}, mapping)

    assert row.name == "Pedri"
    assert row.metrics.instagram_followers == 9000


def test_load_seed_csv_reports_line_of_bad_row(tmp_path: Path):
    path = tmp_path / "players.csv"
    path.write_text("name,goals\nGood Player,4\nBad Player,lots\n", encoding="utf-8")

    with pytest.raises(ValidationError) as excinfo:
        load_seed_csv(path)

    assert "players.csv:3" in str(excinfo.value)


def test_load_seed_csv_rejects_missing_name(tmp_path: Path):
    path = tmp_path / "players.csv"
    path.write_text("name,goals\n,4\n", encoding="utf-8")

    with pytest.raises(ValidationError):
        load_seed_csv(path)


def test_bundled_seed_file_imports_with_initial_scores():
    store = MemoryStore()
    rows = load_seed_csv(SEED_CSV)

    report = import_players(store, rows)

    assert report.created == len(rows) == 20
    assert report.scored == 20
    assert report.errors == []
    messi = store.find_by_name("Lionel Messi")
    assert messi.club == "Inter Miami CF"
    assert messi.instagram_url == "https://www.instagram.com/leomessi/"
    snapshot = store.get_latest(messi.player_id)
    assert snapshot.performance_score == 100
    assert snapshot.engagement_score == 95
    assert snapshot.social_score == 100
    assert len(store.latest_scores()) == 20


def test_reimport_updates_existing_players(tmp_path: Path):
    store = MemoryStore()
    path = tmp_path / "players.csv"
    path.write_text("name,club,goals,fan_engagement\nRodri,Manchester City,8,0.6\n", encoding="utf-8")
    import_players(store, load_seed_csv(path))
    path.write_text("name,club,goals,fan_engagement\nRodri,Manchester City,10,0.6\n", encoding="utf-8")

    report = import_players(store, load_seed_csv(path))

    assert (report.created, report.updated, report.scored) == (0, 1, 1)
    rodri = store.find_by_name("Rodri")
    assert store.get_stats(rodri.player_id).goals == 10
    assert [item.performance_score for item in store.get_history(rodri.player_id)] == [40, 50]
    assert len(store.get_all()) == 1
