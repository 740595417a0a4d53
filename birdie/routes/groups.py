"""Groups: player pool, leaderboard, player profiles, recalculation."""
from flask import Blueprint, jsonify
from birdie.app import db
from birdie.models import Group, GroupPlayer
from birdie.routes.helpers import (
    _json_body, _clean_name, _get_group_or_404, _get_group_player,
    _storage_error, _emit_group_update,
)
from birdie.services.errors import StorageError
from birdie.services.recalculation import recalculate_group
from birdie.services.stats import (
    get_leaderboard, get_player_detailed_stats, get_group_players_stats,
)

groups_bp = Blueprint('groups', __name__)

_MAX_PLAYERS_PER_REQUEST = 50


@groups_bp.route('', methods=['POST'])
def create_group():
    data = _json_body()
    name = _clean_name(data.get('name'))
    if not name:
        return jsonify({'error': 'Group name is required'}), 400

    group = Group(name=name)
    db.session.add(group)
    db.session.flush()

    for raw_name in (data.get('players') or [])[:_MAX_PLAYERS_PER_REQUEST]:
        player_name = _clean_name(raw_name)
        if player_name:
            db.session.add(GroupPlayer(group_id=group.id, name=player_name))
    db.session.commit()
    return jsonify({'group': group.to_dict()}), 201


@groups_bp.route('/<group_id>', methods=['GET'])
def get_group(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    data = group.to_dict()
    data['session_count'] = len(group.sessions)
    data['player_count'] = sum(1 for p in group.players if p.is_active)
    return jsonify({'group': data})


@groups_bp.route('/shareable/<link>', methods=['GET'])
def get_group_by_link(link):
    group = Group.query.filter_by(shareable_link=link).first()
    if not group:
        return jsonify({'error': 'Group not found'}), 404
    return jsonify({'group': group.to_dict()})


@groups_bp.route('/<group_id>/players', methods=['GET'])
def get_group_players(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    players = GroupPlayer.query.filter_by(group_id=group.id, is_active=True)\
        .order_by(GroupPlayer.name.asc()).all()
    return jsonify({'players': [p.to_dict() for p in players]})


@groups_bp.route('/<group_id>/players', methods=['POST'])
def add_group_players(group_id):
    """Add one (``name``) or several (``names``) players to the pool."""
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    data = _json_body()
    raw_names = data.get('names')
    if not isinstance(raw_names, list):
        raw_names = [data.get('name')]
    names = [n for n in (_clean_name(raw) for raw in raw_names[:_MAX_PLAYERS_PER_REQUEST]) if n]
    if not names:
        return jsonify({'error': 'Player name is required'}), 400

    players = [GroupPlayer(group_id=group.id, name=name) for name in names]
    db.session.add_all(players)
    db.session.commit()
    return jsonify({'players': [p.to_dict() for p in players]}), 201


@groups_bp.route('/<group_id>/players/<player_id>', methods=['DELETE'])
def remove_group_player(group_id, player_id):
    """Soft-remove a player; their history and links stay intact."""
    player = _get_group_player(group_id, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404
    player.is_active = False
    db.session.commit()
    _emit_group_update(group_id, reason='player_removed')
    return jsonify({'message': 'Player removed'})


@groups_bp.route('/<group_id>/stats', methods=['GET'])
def get_group_leaderboard(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    try:
        leaderboard = get_leaderboard(group.id)
    except StorageError as exc:
        return _storage_error(exc)
    return jsonify({'group_id': group.id, 'leaderboard': leaderboard})


@groups_bp.route('/<group_id>/player-stats', methods=['GET'])
def get_group_player_totals(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    try:
        stats = get_group_players_stats(group.id)
    except StorageError as exc:
        return _storage_error(exc)
    return jsonify({'group_id': group.id, 'players': stats})


@groups_bp.route('/<group_id>/players/<player_id>/stats', methods=['GET'])
def get_player_stats(group_id, player_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    try:
        stats = get_player_detailed_stats(group.id, player_id)
    except StorageError as exc:
        return _storage_error(exc)
    if stats is None:
        return jsonify({'error': 'Player not found'}), 404
    return jsonify({'stats': stats})


@groups_bp.route('/<group_id>/recalculate', methods=['POST'])
def recalculate_group_ratings(group_id):
    """Admin path: rebuild ratings and records from the full game history."""
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    try:
        summary = recalculate_group(group.id)
    except StorageError as exc:
        return _storage_error(exc)
    _emit_group_update(group.id, reason='recalculated')
    return jsonify({'recalculation': summary})
