"""Shared helpers for the group and session blueprints."""
from flask import request, jsonify
from birdie.app import db, socketio
from birdie.models import Group, GroupPlayer, PlaySession
from birdie.time_utils import utcnow_naive

_MAX_NAME_LENGTH = 120


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _clean_name(raw_name):
    name = str(raw_name or '').strip()
    if not name or len(name) > _MAX_NAME_LENGTH:
        return None
    return name


def _get_group_or_404(group_id):
    group = db.session.get(Group, group_id)
    if not group:
        return None, (jsonify({'error': 'Group not found'}), 404)
    return group, None


def _get_session_or_404(session_id):
    session = db.session.get(PlaySession, session_id)
    if not session:
        return None, (jsonify({'error': 'Session not found'}), 404)
    return session, None


def _get_group_player(group_id, player_id):
    if not group_id or not player_id:
        return None
    player = db.session.get(GroupPlayer, str(player_id))
    if not player or player.group_id != group_id:
        return None
    return player


def _storage_error(exc):
    return jsonify({'error': exc.user_message}), 500


def _emit_group_update(group_id, reason=''):
    if not group_id:
        return
    socketio.emit('group_update', {
        'group_id': group_id,
        'reason': reason,
        'updated_at': utcnow_naive().isoformat(),
    })
