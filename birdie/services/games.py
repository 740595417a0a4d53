"""Recording, correcting and deleting game results within a session.

A result is applied to ratings exactly once: when ``winning_team`` goes from
unset to set. Corrections and deletions take back the win/loss credit in place
and flag ratings as stale until the group is recalculated.
"""
import json
import logging

from sqlalchemy import func

from birdie.app import db
from birdie.models import Game, TEAM_LABELS
from birdie.services.errors import InvalidTeamError, StorageError
from birdie.services.identity import load_player_links
from birdie.services.outcomes import process_game_result, reverse_game_result
from birdie.services.teams import make_team, validate_matchup

logger = logging.getLogger(__name__)

_MIN_SCORE = 0
_MAX_SCORE = 99
_MUTABLE_FIELDS = {'winning_team', 'team_a_score', 'team_b_score'}


def _parse_winning_team(raw_value):
    if raw_value is None or raw_value == '':
        return None
    value = str(raw_value).strip().upper()
    if value not in TEAM_LABELS:
        raise ValueError("Winning team must be 'A' or 'B'")
    return value


def _parse_score(raw_value):
    if raw_value is None or raw_value == '':
        return None
    try:
        score = int(raw_value)
    except (TypeError, ValueError):
        raise ValueError('Scores must be whole numbers') from None
    if score < _MIN_SCORE or score > _MAX_SCORE:
        raise ValueError(f'Scores must be between {_MIN_SCORE} and {_MAX_SCORE}')
    return score


def next_game_number(session_id):
    latest = db.session.query(func.max(Game.game_number)).filter(
        Game.session_id == session_id,
    ).scalar()
    return (latest or 0) + 1


def _validate_teams(session, raw_team_a, raw_team_b):
    team_a = make_team(raw_team_a, session.game_mode)
    team_b = make_team(raw_team_b, session.game_mode)
    validate_matchup(team_a, team_b)
    roster = {player.id for player in session.players}
    unknown = [sp_id for sp_id in list(team_a) + list(team_b) if sp_id not in roster]
    if unknown:
        raise InvalidTeamError('Players are not part of this session')
    return list(team_a), list(team_b)


def _resolve_group_teams(team_a_ids, team_b_ids):
    identities = load_player_links(list(team_a_ids) + list(team_b_ids))
    return identities.resolve_team(team_a_ids), identities.resolve_team(team_b_ids)


def _apply_result(session, team_a_ids, team_b_ids, winning_team):
    if not session.group_id or winning_team is None:
        return []
    try:
        team_a, team_b = _resolve_group_teams(team_a_ids, team_b_ids)
        return process_game_result(team_a, team_b, winning_team)
    except StorageError:
        logger.exception('Rating update failed for session %s', session.id)
        return []


def _reverse_result(session, team_a_ids, team_b_ids, previous_winning_team):
    # Credit is taken back from the players the session is linked to now. A link
    # made after the result was applied loses credit it never got until the
    # group is recalculated.
    if not session.group_id or previous_winning_team is None:
        return []
    try:
        team_a, team_b = _resolve_group_teams(team_a_ids, team_b_ids)
        return reverse_game_result(team_a, team_b, previous_winning_team)
    except StorageError:
        logger.exception('Result reversal failed for session %s', session.id)
        return []


def create_game(session, team_a, team_b, winning_team=None,
                team_a_score=None, team_b_score=None, game_number=None):
    """Create a game and, if it already has a result, apply it to ratings."""
    team_a_ids, team_b_ids = _validate_teams(session, team_a, team_b)
    winning_team = _parse_winning_team(winning_team)
    number = game_number or next_game_number(session.id)

    game = Game(
        id=f'{session.id}-game-{number}',
        session_id=session.id,
        game_number=number,
        team_a=json.dumps(team_a_ids),
        team_b=json.dumps(team_b_ids),
        winning_team=winning_team,
        team_a_score=_parse_score(team_a_score),
        team_b_score=_parse_score(team_b_score),
    )
    db.session.add(game)
    db.session.commit()

    updates = _apply_result(session, team_a_ids, team_b_ids, winning_team)
    return {'game': game, 'rating_updates': updates, 'ratings_stale': False}


def update_game(session, game, changes):
    """Update a game's result or scores.

    Setting a result for the first time applies it. Changing or clearing an
    existing result reverses the old win/loss credit (and applies the new one),
    leaving ratings stale until the group is recalculated.
    """
    changes = dict(changes or {})
    if 'team_a' in changes or 'team_b' in changes:
        if (changes.get('team_a', game.team_a_ids) != game.team_a_ids
                or changes.get('team_b', game.team_b_ids) != game.team_b_ids):
            raise ValueError('Teams cannot be changed after a game is created')
    fields = {key: value for key, value in changes.items() if key in _MUTABLE_FIELDS}
    if not fields:
        raise ValueError('No fields to update')

    parsed = {}
    if 'winning_team' in fields:
        parsed['winning_team'] = _parse_winning_team(fields['winning_team'])
    for key in ('team_a_score', 'team_b_score'):
        if key in fields:
            parsed[key] = _parse_score(fields[key])

    previous = game.winning_team
    for key, value in parsed.items():
        setattr(game, key, value)
    current = game.winning_team
    db.session.commit()

    team_a_ids, team_b_ids = game.team_a_ids, game.team_b_ids
    updates = []
    ratings_stale = False
    if previous != current:
        if previous is not None:
            _reverse_result(session, team_a_ids, team_b_ids, previous)
            ratings_stale = bool(session.group_id)
        if current is not None:
            updates = _apply_result(session, team_a_ids, team_b_ids, current)
    return {'game': game, 'rating_updates': updates, 'ratings_stale': ratings_stale}


def delete_game(session, game):
    """Delete a game, taking back the win/loss credit of a recorded result."""
    previous = game.winning_team
    team_a_ids, team_b_ids = game.team_a_ids, game.team_b_ids
    db.session.delete(game)
    db.session.commit()

    _reverse_result(session, team_a_ids, team_b_ids, previous)
    return {'ratings_stale': bool(session.group_id and previous is not None)}
