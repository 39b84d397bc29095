"""Load player seed CSVs and import them into a store."""

from __future__ import annotations

import csv
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from kickscore.config.weights import DEFAULT_WEIGHTS, ScoringWeights
from kickscore.errors import ValidationError
from kickscore.models import MetricsSnapshot
from kickscore.persistence import Store
from kickscore.scoring import compute_scores


logger = logging.getLogger(__name__)

DEFAULT_COLUMNS: dict[str, str] = {
    "name": "name",
    "club": "club",
    "country": "country",
    "position": "position",
    "instagram_url": "instagram_url",
    "twitter_url": "twitter_url",
    "facebook_url": "facebook_url",
    "goals": "goals",
    "assists": "assists",
    "yellow_cards": "yellow_cards",
    "red_cards": "red_cards",
    "instagram_followers": "instagram_followers",
    "facebook_followers": "facebook_followers",
    "twitter_followers": "twitter_followers",
    "fan_engagement": "fan_engagement",
}

_NUMBER_RE = re.compile(r"[^0-9.\-]")


def _parse_count(raw: Optional[str], field_name: str) -> int:
    if raw is None or not raw.strip():
        return 0
    cleaned = _NUMBER_RE.sub("", raw)
    if not cleaned:
        raise ValueError(f"{field_name} '{raw}' has no digits")
    try:
        return int(float(cleaned))
    except ValueError:
        raise ValueError(f"{field_name} '{raw}' is not numeric") from None


def _parse_engagement(raw: Optional[str]) -> float:
    """Read engagement as a 0-1 ratio; ``85%`` or ``85`` become 0.85."""

    if raw is None or not raw.strip():
        return 0.0
    text = raw.strip()
    percent = text.endswith("%")
    try:
        value = float(text.rstrip("%").strip())
    except ValueError:
        raise ValueError(f"fan_engagement '{raw}' is not numeric") from None
    if percent or value > 1.0:
        value /= 100.0
    return value


class SeedRow(BaseModel):
    name: str = Field(..., min_length=1)
    club: str = ""
    country: str = ""
    position: str = ""
    instagram_url: Optional[str] = None
    twitter_url: Optional[str] = None
    facebook_url: Optional[str] = None
    metrics: MetricsSnapshot

    @classmethod
    def from_mapping(cls, row: Mapping[str, str], mapping: Mapping[str, str]) -> "SeedRow":
        def extract(key: str) -> Optional[str]:
            column = mapping.get(key)
            if column is None:
                return None
            value = row.get(column)
            return value.strip() if value is not None else None

        metrics = MetricsSnapshot(
            goals=_parse_count(extract("goals"), "goals"),
            assists=_parse_count(extract("assists"), "assists"),
            yellow_cards=_parse_count(extract("yellow_cards"), "yellow_cards"),
            red_cards=_parse_count(extract("red_cards"), "red_cards"),
            instagram_followers=_parse_count(extract("instagram_followers"), "instagram_followers"),
            facebook_followers=_parse_count(extract("facebook_followers"), "facebook_followers"),
            twitter_followers=_parse_count(extract("twitter_followers"), "twitter_followers"),
            fan_engagement=_parse_engagement(extract("fan_engagement")),
        )
        return cls(
            name=extract("name") or "",
            club=extract("club") or "",
            country=extract("country") or "",
            position=extract("position") or "",
            instagram_url=extract("instagram_url") or None,
            twitter_url=extract("twitter_url") or None,
            facebook_url=extract("facebook_url") or None,
            metrics=metrics,
        )


@dataclass
class ImportReport:
    created: int = 0
    updated: int = 0
    scored: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "scored": self.scored,
            "errors": list(self.errors),
        }


def load_seed_csv(path: Path, mapping: Optional[Mapping[str, str]] = None) -> List[SeedRow]:
    """Parse a seed CSV into rows; malformed lines raise ``ValidationError``."""

    columns = {**DEFAULT_COLUMNS, **(mapping or {})}
    rows: List[SeedRow] = []
    with path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        for line_number, raw in enumerate(reader, start=2):
            try:
                rows.append(SeedRow.from_mapping(raw, columns))
            except (ValueError, PydanticValidationError) as exc:
                raise ValidationError(f"{path.name}:{line_number}: {exc}") from exc
    return rows


def import_players(
    store: Store,
    rows: Iterable[SeedRow],
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> ImportReport:
    """Create or update players from seed rows and append an initial snapshot.

    Players are matched by exact name; matched players keep their id and get
    their stats row overwritten.
    """

    report = ImportReport()
    for row in rows:
        player = store.find_by_name(row.name)
        if player is None:
            player = store.add_player(
                name=row.name,
                club=row.club,
                country=row.country,
                position=row.position,
                instagram_url=row.instagram_url,
                twitter_url=row.twitter_url,
                facebook_url=row.facebook_url,
            )
            report.created += 1
        else:
            report.updated += 1
        try:
            stats = store.upsert_stats(player.player_id, row.metrics)
            store.append(player.player_id, compute_scores(MetricsSnapshot.from_stats(stats), weights))
        except (ValueError, LookupError) as exc:
            logger.warning("Error importing %s: %s", row.name, exc)
            report.errors.append(f"{row.name}: {exc}")
            continue
        report.scored += 1
    logger.info(
        "Imported players: %d created, %d updated, %d scored",
        report.created,
        report.updated,
        report.scored,
    )
    return report
