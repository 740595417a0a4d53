"""Play sessions: roster, player links and game results."""
from flask import Blueprint, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from birdie.app import db
from birdie.models import PlaySession, SessionPlayer, Game, GAME_MODES
from birdie.routes.helpers import (
    _json_body, _clean_name, _get_group_or_404, _get_session_or_404,
    _get_group_player, _storage_error, _emit_group_update,
)
from birdie.services.errors import StorageError
from birdie.services.games import create_game, update_game, delete_game
from birdie.services.identity import link_session_player
from birdie.services.recalculation import recalculate_group
from birdie.time_utils import parse_session_date

sessions_bp = Blueprint('sessions', __name__)

_MAX_SESSION_PLAYERS = 40


def _parse_roster(raw_players, group_id):
    """Accept names or {'name', 'group_player_id'} dicts; returns (rows, error)."""
    if not isinstance(raw_players, list):
        return None, 'Players must be a list'
    rows = []
    linked = set()
    for raw in raw_players[:_MAX_SESSION_PLAYERS]:
        if isinstance(raw, dict):
            name = _clean_name(raw.get('name'))
            group_player_id = raw.get('group_player_id') or None
        else:
            name = _clean_name(raw)
            group_player_id = None
        if group_player_id:
            group_player = _get_group_player(group_id, group_player_id)
            if not group_player:
                return None, 'Linked player does not belong to this group'
            if group_player_id in linked:
                return None, 'A group player can only be linked once per session'
            linked.add(group_player_id)
            name = name or group_player.name
        if not name:
            return None, 'Every player needs a name'
        rows.append((name, group_player_id))
    return rows, None


@sessions_bp.route('', methods=['POST'])
def create_session():
    data = _json_body()
    game_mode = str(data.get('game_mode') or 'doubles').strip().lower()
    if game_mode not in GAME_MODES:
        return jsonify({'error': 'Game mode must be doubles or singles'}), 400

    group_id = data.get('group_id') or None
    if group_id:
        _, error = _get_group_or_404(group_id)
        if error:
            return error

    roster, roster_error = _parse_roster(data.get('players') or [], group_id)
    if roster_error:
        return jsonify({'error': roster_error}), 400
    min_players = 2 if game_mode == 'singles' else 4
    if len(roster) < min_players:
        return jsonify({'error': f'{game_mode.capitalize()} needs at least {min_players} players'}), 400

    session = PlaySession(
        group_id=group_id,
        name=str(data.get('name') or '').strip()[:200],
        date=parse_session_date(data.get('date')),
        game_mode=game_mode,
    )
    db.session.add(session)
    db.session.flush()
    for name, group_player_id in roster:
        db.session.add(SessionPlayer(
            session_id=session.id, name=name, group_player_id=group_player_id,
        ))
    db.session.commit()
    return jsonify({'session': session.to_dict()}), 201


@sessions_bp.route('/<session_id>', methods=['GET'])
def get_session(session_id):
    session, error = _get_session_or_404(session_id)
    if error:
        return error
    data = session.to_dict()
    data['games'] = [g.to_dict() for g in session.games]
    return jsonify({'session': data})


@sessions_bp.route('/<session_id>/players/<player_id>/link', methods=['POST'])
def link_player(session_id, player_id):
    """Link a session player to a group player, optionally backfilling ratings."""
    session, error = _get_session_or_404(session_id)
    if error:
        return error
    session_player = db.session.get(SessionPlayer, player_id)
    if not session_player or session_player.session_id != session.id:
        return jsonify({'error': 'Player not found'}), 404

    if not session.group_id:
        return jsonify({'error': 'Session has no group'}), 400

    data = _json_body()
    group_player = _get_group_player(session.group_id, data.get('group_player_id'))
    if not group_player:
        return jsonify({'error': 'Group player not found'}), 404

    try:
        link_session_player(session_player, group_player)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400

    recalculate = data.get('recalculate')
    if recalculate is None:
        recalculate = current_app.config.get('RECALCULATE_ON_LINK', False)
    summary = None
    if recalculate:
        try:
            summary = recalculate_group(session.group_id)
        except StorageError as exc:
            return _storage_error(exc)
    _emit_group_update(session.group_id, reason='player_linked')
    return jsonify({
        'player': session_player.to_dict(),
        'recalculation': summary,
        'ratings_stale': not recalculate,
    })


@sessions_bp.route('/<session_id>/games', methods=['GET'])
def get_games(session_id):
    session, error = _get_session_or_404(session_id)
    if error:
        return error
    games = Game.query.filter_by(session_id=session.id)\
        .order_by(Game.game_number.asc()).all()
    return jsonify({'games': [g.to_dict() for g in games]})


def _result_payload(result):
    return {
        'game': result['game'].to_dict(),
        'rating_updates': [u.to_dict() for u in result['rating_updates']],
        'ratings_stale': result['ratings_stale'],
    }


@sessions_bp.route('/<session_id>/games', methods=['POST'])
def add_game(session_id):
    session, error = _get_session_or_404(session_id)
    if error:
        return error

    data = _json_body()
    try:
        result = create_game(
            session,
            data.get('team_a'), data.get('team_b'),
            winning_team=data.get('winning_team'),
            team_a_score=data.get('team_a_score'),
            team_b_score=data.get('team_b_score'),
        )
    except ValueError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Game number already exists in this session'}), 409

    if result['game'].winning_team:
        _emit_group_update(session.group_id, reason='game_recorded')
    return jsonify(_result_payload(result)), 201


@sessions_bp.route('/<session_id>/games/<game_id>', methods=['PATCH'])
def edit_game(session_id, game_id):
    session, error = _get_session_or_404(session_id)
    if error:
        return error
    game = db.session.get(Game, game_id)
    if not game or game.session_id != session.id:
        return jsonify({'error': 'Game not found'}), 404

    try:
        result = update_game(session, game, _json_body())
    except ValueError as exc:
        db.session.rollback()
        return jsonify({'error': str(exc)}), 400

    _emit_group_update(session.group_id, reason='game_updated')
    return jsonify(_result_payload(result))


@sessions_bp.route('/<session_id>/games/<game_id>', methods=['DELETE'])
def remove_game(session_id, game_id):
    session, error = _get_session_or_404(session_id)
    if error:
        return error
    game = db.session.get(Game, game_id)
    if not game or game.session_id != session.id:
        return jsonify({'error': 'Game not found'}), 404

    result = delete_game(session, game)
    _emit_group_update(session.group_id, reason='game_deleted')
    return jsonify({'message': 'Game deleted', 'ratings_stale': result['ratings_stale']})
