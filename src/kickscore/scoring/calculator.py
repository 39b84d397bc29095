"""Influence score calculation.

The composite score blends three sub-scores, each on a 0-100 scale:

* social: follower reach on a log10 scale (up to 80 points) plus fan
  engagement (up to 20 points);
* performance: 5 per goal, 3 per assist, -1 per yellow card, -3 per red card;
* engagement: the fan engagement ratio expressed as a percentage.

The total is ``0.4 * social + 0.4 * performance + 0.2 * engagement``. Every
value is rounded half-up and clamped into [0, 100].
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Union

from pydantic.alias_generators import to_camel

from kickscore.config.weights import DEFAULT_WEIGHTS, ScoringWeights
from kickscore.errors import ValidationError
from kickscore.models import COUNT_FIELDS, MetricsSnapshot, ScoreValues


MetricsInput = Union[MetricsSnapshot, Mapping[str, Any]]

SCORE_MIN = 0
SCORE_MAX = 100

# Any count past this already saturates every sub-score.
COUNT_CEILING = 1e15


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    if math.isnan(value):
        return SCORE_MIN
    return round_half_up(max(SCORE_MIN, min(SCORE_MAX, value)))


def _read_number(data: Mapping[str, Any], field: str) -> float:
    raw = data.get(field)
    if raw is None:
        raw = data.get(to_camel(field))
    if raw is None:
        return 0.0
    try:
        value = float(raw)
    except OverflowError:
        # Integers too large for a float saturate instead of failing.
        return COUNT_CEILING if raw > 0 else -COUNT_CEILING
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be numeric, got {raw!r}") from None
    if math.isnan(value):
        return 0.0
    if math.isinf(value):
        raise ValidationError(f"{field} must be finite")
    return value


def _normalize(metrics: MetricsInput) -> dict[str, float]:
    if isinstance(metrics, MetricsSnapshot):
        data: Mapping[str, Any] = metrics.model_dump()
    else:
        data = metrics
    values = {field: max(0.0, min(COUNT_CEILING, _read_number(data, field))) for field in COUNT_FIELDS}
    engagement = _read_number(data, "fan_engagement")
    values["fan_engagement"] = max(0.0, min(1.0, engagement))
    return values


def social_score(total_followers: float, fan_engagement: float, weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    reach = math.log10(max(0.0, total_followers) + 1) / weights.follower_log_ceiling
    return clamp_score(reach * weights.follower_points + fan_engagement * weights.engagement_points)


def performance_score(
    goals: float,
    assists: float,
    yellow_cards: float,
    red_cards: float,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> int:
    raw = (
        goals * weights.goal_points
        + assists * weights.assist_points
        + yellow_cards * weights.yellow_card_points
        + red_cards * weights.red_card_points
    )
    return clamp_score(raw)


def engagement_score(fan_engagement: float) -> int:
    return clamp_score(fan_engagement * 100)


def total_score(social: int, performance: int, engagement: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> int:
    return clamp_score(
        social * weights.social_weight
        + performance * weights.performance_weight
        + engagement * weights.engagement_weight
    )


def compute_scores(metrics: MetricsInput, weights: ScoringWeights = DEFAULT_WEIGHTS) -> ScoreValues:
    """Map a metrics snapshot to social, performance, engagement and total scores."""

    values = _normalize(metrics)
    followers = values["instagram_followers"] + values["facebook_followers"] + values["twitter_followers"]
    social = social_score(followers, values["fan_engagement"], weights)
    performance = performance_score(
        values["goals"],
        values["assists"],
        values["yellow_cards"],
        values["red_cards"],
        weights,
    )
    engagement = engagement_score(values["fan_engagement"])
    return ScoreValues(
        social_score=social,
        performance_score=performance,
        engagement_score=engagement,
        total_score=total_score(social, performance, engagement, weights),
    )
