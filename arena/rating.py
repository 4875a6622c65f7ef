"""Logistic (ELO) rating arithmetic used after every battle."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_K_FACTOR = 32


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a player rated ``rating`` beats ``opponent_rating``."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


@dataclass(frozen=True, slots=True)
class RatingChange:
    winner_elo: int
    loser_elo: int
    winner_delta: float
    loser_delta: float


def rate_win(winner_elo: int, loser_elo: int, k_factor: int = DEFAULT_K_FACTOR) -> RatingChange:
    """Return post-battle ratings for a decided win/loss.

    Both sides use the pre-battle ratings, so the unrounded deltas always
    cancel out.
    """

    winner_expected = expected_score(winner_elo, loser_elo)
    loser_expected = expected_score(loser_elo, winner_elo)
    winner_delta = k_factor * (1 - winner_expected)
    loser_delta = k_factor * (0 - loser_expected)
    return RatingChange(
        winner_elo=round(winner_elo + winner_delta),
        loser_elo=round(loser_elo + loser_delta),
        winner_delta=winner_delta,
        loser_delta=loser_delta,
    )
