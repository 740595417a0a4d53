"""Tests for the leaderboard and player profile aggregation."""
from birdie.app import db
from birdie.models import GroupPlayer
from birdie.services.recalculation import recalculate_group
from birdie.services.stats import (
    current_streak, get_group_players_stats, get_leaderboard,
    get_player_detailed_stats, recent_form, trend,
)


def _singles_series(seed, outcomes_for_ana):
    """Ana plays Ben repeatedly; outcomes are Ana's, oldest first."""
    group, gp = seed.group('Ana', 'Ben')
    session, sp = seed.session(group, dict(gp), game_mode='singles')
    for outcome in outcomes_for_ana:
        seed.game(session, [sp['Ana']], [sp['Ben']], 'A' if outcome == 'W' else 'B')
    recalculate_group(group.id)
    return group, gp


def test_streak_counts_back_from_latest_game():
    assert current_streak([]) == 0
    assert current_streak(['W', 'W', 'L']) == -1
    assert current_streak(['W', 'L', 'W']) == 1
    assert current_streak(['L', 'W', 'W', 'W']) == 3
    assert current_streak(['L', 'L']) == -2


def test_recent_form_is_most_recent_first():
    assert recent_form(['W', 'L', 'L', 'W', 'W', 'L'], 5) == ['L', 'W', 'W', 'L', 'L']
    assert recent_form([], 5) == []


def test_trend_uses_short_window():
    assert trend([], 3) == 'stable'
    assert trend(['L', 'L', 'W', 'W'], 3) == 'up'
    assert trend(['W', 'W', 'L', 'L'], 3) == 'down'
    assert trend(['W', 'L'], 3) == 'stable'


def test_player_without_games_still_ranks(seed):
    group, _ = _singles_series(seed, ['W'])
    rookie = GroupPlayer(group_id=group.id, name='Rookie')
    db.session.add(rookie)
    db.session.commit()

    board = get_leaderboard(group.id)

    assert [entry['player_name'] for entry in board] == ['Ana', 'Rookie', 'Ben']
    assert [entry['rank'] for entry in board] == [1, 2, 3]
    rookie_entry = board[1]
    assert rookie_entry['elo_rating'] == 1500
    assert rookie_entry['win_rate'] == 0
    assert rookie_entry['recent_form'] == []
    assert rookie_entry['trend'] == 'stable'
    assert rookie_entry['total_games'] == 0


def test_leaderboard_ties_break_on_games_then_id(seed):
    group, gp = seed.group('Ana', 'Ben', 'Cal')
    gp['Ana'].elo_rating = 1500
    gp['Ben'].elo_rating = 1500
    gp['Ben'].wins = 1
    gp['Ben'].total_games = 1
    db.session.commit()

    board = get_leaderboard(group.id)

    assert board[0]['player_name'] == 'Ben'
    rest = sorted([gp['Ana'].id, gp['Cal'].id])
    assert [entry['group_player_id'] for entry in board[1:]] == rest


def test_leaderboard_entry_fields(seed):
    group, gp = _singles_series(seed, ['W', 'W', 'L', 'W', 'L', 'W', 'W'])

    board = {entry['player_name']: entry for entry in get_leaderboard(group.id)}

    ana = board['Ana']
    assert ana['rank'] == 1
    assert (ana['wins'], ana['losses'], ana['total_games']) == (5, 2, 7)
    assert ana['win_rate'] == 71.4
    assert ana['recent_form'] == ['W', 'W', 'L', 'W', 'L']
    assert ana['trend'] == 'up'
    assert board['Ben']['trend'] == 'down'


def test_removed_players_leave_leaderboard(seed):
    group, gp = seed.group('Ana', 'Ben')
    gp['Ben'].is_active = False
    db.session.commit()

    assert [e['player_name'] for e in get_leaderboard(group.id)] == ['Ana']


def test_empty_group_leaderboard(seed):
    group, _ = seed.group()
    assert get_leaderboard(group.id) == []
    assert get_leaderboard('missing') == []


def test_streak_in_profile(seed):
    group, gp = _singles_series(seed, ['W', 'W', 'L'])
    assert get_player_detailed_stats(group.id, gp['Ana'].id)['current_streak'] == -1

    group, gp = _singles_series(seed, ['W', 'L', 'W'])
    assert get_player_detailed_stats(group.id, gp['Ana'].id)['current_streak'] == 1


def test_partner_and_opponent_breakdown(seed):
    group, gp = seed.group('Ana', 'Ben', 'Cal', 'Dee')
    session, sp = seed.session(group, dict(gp), guests=['Guest'])
    seed.game(session, [sp['Ana'], sp['Ben']], [sp['Cal'], sp['Dee']], 'A', (21, 12))
    seed.game(session, [sp['Ana'], sp['Ben']], [sp['Cal'], sp['Dee']], 'B', (19, 21))
    seed.game(session, [sp['Ben'], sp['Ana']], [sp['Cal'], sp['Guest']], 'A', (21, None))
    recalculate_group(group.id)

    stats = get_player_detailed_stats(group.id, gp['Ana'].id)

    assert stats['partner_stats'] == [{
        'partner_id': gp['Ben'].id,
        'partner_name': 'Ben',
        'games_played': 3,
        'wins': 2,
        'losses': 1,
        'win_rate': 66.7,
    }]
    opponents = {row['opponent_name']: row for row in stats['opponent_stats']}
    assert set(opponents) == {'Cal', 'Dee'}
    assert (opponents['Cal']['games_played'], opponents['Cal']['wins']) == (3, 2)
    assert (opponents['Dee']['games_played'], opponents['Dee']['wins']) == (2, 1)
    assert stats['opponent_stats'][0]['opponent_name'] == 'Cal'

    assert stats['points_scored'] == 61
    assert stats['points_conceded'] == 33
    assert stats['point_differential'] == 28
    assert stats['total_games'] == 3
    assert stats['recent_form'] == ['W', 'L', 'W']


def test_sessions_played_counts_linked_sessions(seed):
    group, gp = seed.group('Ana', 'Ben')
    seed.session(group, dict(gp), game_mode='singles')
    seed.session(group, dict(gp), game_mode='singles')
    seed.session(group, {'Ben': gp['Ben']}, guests=['Zed'], game_mode='singles')

    assert get_player_detailed_stats(group.id, gp['Ana'].id)['sessions_played'] == 2
    assert get_player_detailed_stats(group.id, gp['Ben'].id)['sessions_played'] == 3


def test_profile_of_player_without_games_is_all_zero(seed):
    group, gp = seed.group('Ana', 'Ben')

    stats = get_player_detailed_stats(group.id, gp['Ana'].id)

    assert stats['elo_rating'] == 1500
    assert stats['total_players'] == 2
    assert stats['rank'] in (1, 2)
    for key in ('total_games', 'wins', 'losses', 'win_rate', 'points_scored',
                'points_conceded', 'point_differential', 'sessions_played',
                'current_streak'):
        assert stats[key] == 0
    assert stats['recent_form'] == []
    assert stats['partner_stats'] == []
    assert stats['opponent_stats'] == []


def test_profile_of_unknown_player_is_none(seed):
    group, _ = seed.group('Ana')
    _, other = seed.group('Zed', name='Elsewhere')
    assert get_player_detailed_stats(group.id, 'missing') is None
    assert get_player_detailed_stats(group.id, other['Zed'].id) is None


def test_group_player_totals_come_from_game_records(seed):
    group, gp = seed.group('Ana', 'Ben', 'Cal')
    session, sp = seed.session(group, dict(gp), game_mode='singles')
    seed.game(session, [sp['Ana']], [sp['Ben']], 'A', (21, 10))
    seed.game(session, [sp['Ana']], [sp['Cal']], 'B', (20, 22))
    seed.game(session, [sp['Ben']], [sp['Cal']], 'A', (21, 18))

    rows = get_group_players_stats(group.id)

    assert [row['player_name'] for row in rows] == ['Ana', 'Ben', 'Cal']
    ana = rows[0]
    assert (ana['total_games'], ana['wins'], ana['losses']) == (2, 1, 1)
    assert (ana['points_scored'], ana['points_conceded']) == (41, 32)
    assert ana['win_rate'] == 50.0
    assert ana['sessions_played'] == 1
