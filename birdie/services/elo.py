"""
ELO Rating Engine for badminton: team-vs-team, win/loss only.

Key design decisions:
- Start: 1500 ELO for every group player.
- K-factor: fixed 32 (casual play, no provisional period).
- Doubles: the team is rated as the average of its players for the expected
  score. The rating change is computed once per team and then applied to each
  player's own rating, so teammates who entered with different ratings stay apart.
- Floor: no rating ever drops below 100.
- Formula: E = 1 / (1 + 10^((opp - team) / 400))
           R' = round(R + K * (actual - E))
- Every function here is pure; full-history replay depends on that.
"""
import math

DEFAULT_ELO = 1500
K_FACTOR = 32
RATING_FLOOR = 100


def _round_half_up(value):
    # Python's round() is banker's rounding; ratings use half-up.
    return int(math.floor(value + 0.5))


def expected_score(rating_a, rating_b):
    """Probability that side A beats side B.

    E = 1 / (1 + 10^((rating_b - rating_a) / 400))
    """
    return 1.0 / (1.0 + math.pow(10, (rating_b - rating_a) / 400.0))


def updated_rating(rating, opponent_rating, won, k_factor=K_FACTOR, floor=RATING_FLOOR):
    """Rating after one game against ``opponent_rating``, rounded and floored."""
    expected = expected_score(rating, opponent_rating)
    actual = 1.0 if won else 0.0
    return max(floor, _round_half_up(rating + k_factor * (actual - expected)))


def team_rating(ratings, default=DEFAULT_ELO):
    """Average rating of a team; an empty team rates as the default."""
    ratings = list(ratings)
    if not ratings:
        return default
    return sum(ratings) / len(ratings)


def apply_team_delta(player_rating, team_before, team_after, floor=RATING_FLOOR):
    """Move one player's own rating by the change their team received."""
    delta = team_after - team_before
    return max(floor, _round_half_up(player_rating + delta))
