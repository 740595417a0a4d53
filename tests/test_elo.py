"""Tests for the pure rating functions."""
import pytest

from birdie.services.elo import (
    DEFAULT_ELO, RATING_FLOOR, apply_team_delta, expected_score, team_rating,
    updated_rating,
)


@pytest.mark.parametrize('rating_a,rating_b', [
    (1500, 1500), (1200, 1800), (2400, 100), (1500.5, 1499.25), (100, 3000),
])
def test_expected_scores_of_both_sides_sum_to_one(rating_a, rating_b):
    total = expected_score(rating_a, rating_b) + expected_score(rating_b, rating_a)
    assert total == pytest.approx(1.0)


def test_expected_score_is_even_for_equal_ratings():
    assert expected_score(1500, 1500) == pytest.approx(0.5)
    assert expected_score(1900, 1500) > 0.9
    assert 0 < expected_score(100, 3000) < 1


def test_equal_ratings_move_by_half_the_k_factor():
    assert updated_rating(1500, 1500, won=True) == 1516
    assert updated_rating(1500, 1500, won=False) == 1484


def test_win_never_lowers_and_loss_never_raises_rating():
    for rating in (100, 800, 1500, 2200):
        for opponent in (100, 1200, 1500, 2800):
            assert updated_rating(rating, opponent, won=True) >= rating
            assert updated_rating(rating, opponent, won=False) <= rating


def test_underdog_gains_more_than_favourite():
    underdog_gain = updated_rating(1300, 1700, won=True) - 1300
    favourite_gain = updated_rating(1700, 1300, won=True) - 1700
    assert underdog_gain > favourite_gain > 0


def test_rating_never_drops_below_floor():
    rating = 180
    for _ in range(50):
        rating = updated_rating(rating, 100, won=False)
        assert rating >= RATING_FLOOR
    assert rating == RATING_FLOOR


def test_team_rating_is_mean_and_defaults_when_empty():
    assert team_rating([]) == DEFAULT_ELO
    assert team_rating([1400, 1600]) == 1500
    assert team_rating([1501]) == 1501
    assert team_rating([1400, 1401]) == pytest.approx(1400.5)


def test_team_delta_keeps_teammates_apart():
    before = team_rating([1400, 1600])
    after = updated_rating(before, 1500, won=True)
    assert apply_team_delta(1400, before, after) == 1416
    assert apply_team_delta(1600, before, after) == 1616


def test_team_delta_respects_floor():
    assert apply_team_delta(105, 1500, 1484) == RATING_FLOOR


def test_k_factor_is_configurable():
    assert updated_rating(1500, 1500, won=True, k_factor=64) == 1532


def test_new_group_players_start_at_engine_default(seed):
    _, players = seed.group('Ana')
    assert players['Ana'].elo_rating == DEFAULT_ELO
