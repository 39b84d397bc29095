"""Input adapters that load player seed data."""

from .players import DEFAULT_COLUMNS, ImportReport, SeedRow, import_players, load_seed_csv

__all__ = [
    "DEFAULT_COLUMNS",
    "ImportReport",
    "SeedRow",
    "import_players",
    "load_seed_csv",
]
