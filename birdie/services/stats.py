"""Group leaderboard and per-player statistics.

Everything here is read-only. Game records are scanned once per request and
mapped onto group players through an IdentityMap; guests drop out of every
aggregate. Ratings and win/loss counters are read from the group player rows
that the outcome processor maintains.
"""
import logging

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from birdie.models import GroupPlayer
from birdie.services.errors import StorageError
from birdie.services.identity import group_session_ids, load_identity_map
from birdie.services.recalculation import recorded_games

logger = logging.getLogger(__name__)


def _setting(name, default):
    if has_app_context():
        return current_app.config.get(name, default)
    return default


def _win_rate(wins, games):
    if not games:
        return 0
    return round(wins / games * 100, 1)


def _group_players(group_id, active_only=True):
    try:
        query = GroupPlayer.query.filter(GroupPlayer.group_id == group_id)
        if active_only:
            query = query.filter(GroupPlayer.is_active.is_(True))
        return query.all()
    except SQLAlchemyError as exc:
        logger.error('Failed to fetch players for group %s: %s', group_id, exc)
        raise StorageError('Failed to fetch group players', details=str(exc)) from exc


def _resolved_games(group_id):
    """Recorded games of a group as group-player views, oldest first."""
    session_ids = group_session_ids(group_id)
    games = recorded_games(session_ids)
    identities = load_identity_map(session_ids)

    views = []
    for game in games:
        team_a = list(dict.fromkeys(identities.resolve_team(game.team_a_ids)))
        team_b = list(dict.fromkeys(identities.resolve_team(game.team_b_ids)))
        if not team_a and not team_b:
            continue
        views.append({
            'game_id': game.id,
            'session_id': game.session_id,
            'team_a': team_a,
            'team_b': team_b,
            'winning_team': game.winning_team,
            'team_a_score': game.team_a_score or 0,
            'team_b_score': game.team_b_score or 0,
        })
    return views, identities


def _player_side(view, group_player_id):
    if group_player_id in view['team_a']:
        return 'A'
    if group_player_id in view['team_b']:
        return 'B'
    return None


def _outcomes_by_player(views):
    """Chronological list of 'W'/'L' per group player."""
    outcomes = {}
    for view in views:
        for side in ('A', 'B'):
            result = 'W' if view['winning_team'] == side else 'L'
            for gp_id in view['team_a' if side == 'A' else 'team_b']:
                outcomes.setdefault(gp_id, []).append(result)
    return outcomes


def recent_form(outcomes, size):
    """Most recent outcomes first."""
    return list(reversed(outcomes[-size:])) if size > 0 else []


def current_streak(outcomes):
    """Signed length of the run of identical outcomes ending at the latest game."""
    if not outcomes:
        return 0
    latest = outcomes[-1]
    run = 0
    for outcome in reversed(outcomes):
        if outcome != latest:
            break
        run += 1
    return run if latest == 'W' else -run


def trend(outcomes, window):
    recent = outcomes[-window:] if window > 0 else []
    net = sum(1 if outcome == 'W' else -1 for outcome in recent)
    if net > 0:
        return 'up'
    if net < 0:
        return 'down'
    return 'stable'


def _rank_key(player):
    return (-(player.elo_rating or 0), -(player.total_games or 0), player.id)


def _leaderboard_entries(players, outcomes):
    form_size = _setting('RECENT_FORM_SIZE', 5)
    window = _setting('TREND_WINDOW', 3)
    entries = []
    for rank, player in enumerate(sorted(players, key=_rank_key), 1):
        history = outcomes.get(player.id, [])
        entries.append({
            'group_player_id': player.id,
            'player_name': player.name,
            'elo_rating': player.elo_rating,
            'rank': rank,
            'total_games': player.total_games,
            'wins': player.wins,
            'losses': player.losses,
            'win_rate': _win_rate(player.wins, player.total_games),
            'recent_form': recent_form(history, form_size),
            'trend': trend(history, window),
        })
    return entries


def get_leaderboard(group_id):
    """Ranked leaderboard of a group's active players, including those with no games."""
    players = _group_players(group_id)
    if not players:
        return []
    views, _ = _resolved_games(group_id)
    return _leaderboard_entries(players, _outcomes_by_player(views))


def _matchup_rows(table, names, id_key, name_key):
    rows = []
    for gp_id, record in table.items():
        games = record['wins'] + record['losses']
        rows.append({
            id_key: gp_id,
            name_key: names.get(gp_id, 'Unknown'),
            'games_played': games,
            'wins': record['wins'],
            'losses': record['losses'],
            'win_rate': _win_rate(record['wins'], games),
        })
    rows.sort(key=lambda row: (-row['games_played'], -row['win_rate'], row[name_key]))
    return rows


def _tally(table, gp_id, won):
    record = table.setdefault(gp_id, {'wins': 0, 'losses': 0})
    record['wins' if won else 'losses'] += 1


def get_player_detailed_stats(group_id, group_player_id):
    """Full profile for one group player, or None if the id is not in the group.

    A player with no recorded games gets the same shape with zeros.
    """
    everyone = _group_players(group_id, active_only=False)
    names = {player.id: player.name for player in everyone}
    player = next((p for p in everyone if p.id == group_player_id), None)
    if player is None:
        return None

    views, identities = _resolved_games(group_id)
    active = [p for p in everyone if p.is_active]
    board = _leaderboard_entries(active, _outcomes_by_player(views))
    entry = next((e for e in board if e['group_player_id'] == group_player_id), None)

    outcomes = []
    scored = conceded = 0
    partners = {}
    opponents = {}
    for view in views:
        side = _player_side(view, group_player_id)
        if side is None:
            continue
        won = view['winning_team'] == side
        outcomes.append('W' if won else 'L')
        own, other = ('team_a', 'team_b') if side == 'A' else ('team_b', 'team_a')
        scored += view[f'{own}_score']
        conceded += view[f'{other}_score']
        for partner_id in view[own]:
            if partner_id != group_player_id:
                _tally(partners, partner_id, won)
        for opponent_id in view[other]:
            _tally(opponents, opponent_id, won)

    return {
        'group_player_id': player.id,
        'player_name': player.name,
        'elo_rating': player.elo_rating,
        'rank': entry['rank'] if entry else None,
        'total_players': len(active),
        'total_games': player.total_games,
        'wins': player.wins,
        'losses': player.losses,
        'win_rate': _win_rate(player.wins, player.total_games),
        'points_scored': scored,
        'points_conceded': conceded,
        'point_differential': scored - conceded,
        'sessions_played': len(identities.sessions_for(player.id)),
        'recent_form': recent_form(outcomes, _setting('PROFILE_FORM_SIZE', 10)),
        'current_streak': current_streak(outcomes),
        'partner_stats': _matchup_rows(partners, names, 'partner_id', 'partner_name'),
        'opponent_stats': _matchup_rows(opponents, names, 'opponent_id', 'opponent_name'),
    }


def get_group_players_stats(group_id):
    """Totals recomputed from game records, sorted by win rate then games played."""
    players = _group_players(group_id)
    if not players:
        return []
    views, identities = _resolved_games(group_id)

    stats = {
        player.id: {
            'group_player_id': player.id,
            'player_name': player.name,
            'total_games': 0, 'wins': 0, 'losses': 0, 'win_rate': 0,
            'points_scored': 0, 'points_conceded': 0,
            'sessions_played': len(identities.sessions_for(player.id)),
        }
        for player in players
    }
    for view in views:
        for side, own, other in [('A', 'team_a', 'team_b'), ('B', 'team_b', 'team_a')]:
            won = view['winning_team'] == side
            for gp_id in view[own]:
                row = stats.get(gp_id)
                if row is None:
                    continue
                row['total_games'] += 1
                row['wins' if won else 'losses'] += 1
                row['points_scored'] += view[f'{own}_score']
                row['points_conceded'] += view[f'{other}_score']

    results = list(stats.values())
    for row in results:
        row['win_rate'] = _win_rate(row['wins'], row['total_games'])
    results.sort(key=lambda row: (-row['win_rate'], -row['total_games'], row['player_name']))
    return results
