"""Exception hierarchy shared by the scoring and refresh layers."""

from __future__ import annotations


class KickscoreError(Exception):
    """Base class for every error raised by kickscore."""


class PlayerNotFoundError(KickscoreError, LookupError):
    def __init__(self, player_id: int):
        super().__init__(f"Player {player_id} not found")
        self.player_id = player_id


class MissingStatsError(KickscoreError, LookupError):
    def __init__(self, player_id: int):
        super().__init__(f"No stats found for player {player_id}")
        self.player_id = player_id


class ValidationError(KickscoreError, ValueError):
    """Raised for malformed intervals or metric values before any work starts."""


class TransientSourceError(KickscoreError):
    """The metric source failed for this cycle; the next cycle retries."""

    def __init__(self, player_id: int, message: str = "metric source unavailable"):
        super().__init__(f"{message} (player {player_id})")
        self.player_id = player_id


class RefreshInProgressError(KickscoreError):
    """A batch refresh is already running."""

    def __init__(self, message: str = "A refresh batch is already running"):
        super().__init__(message)
        self.message = message
