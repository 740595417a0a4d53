"""Session player → group player identity resolution.

A session player is linked to at most one group player. Players without a
link are guests: they play and appear in session results but are invisible
to ratings and group statistics. Links are loaded once per pass into an
``IdentityMap`` rather than queried per game.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from birdie.app import db
from birdie.models import PlaySession, SessionPlayer
from birdie.services.errors import StorageError

logger = logging.getLogger(__name__)


class IdentityMap:
    def __init__(self, links=None, sessions_by_group_player=None):
        self._links = dict(links or {})
        self._sessions = {
            gp_id: set(session_ids)
            for gp_id, session_ids in (sessions_by_group_player or {}).items()
        }

    def group_player_for(self, session_player_id):
        return self._links.get(session_player_id)

    def resolve_team(self, session_player_ids):
        """Map a team's session player ids to group player ids, dropping guests."""
        resolved = []
        for sp_id in session_player_ids or []:
            gp_id = self.group_player_for(sp_id)
            if gp_id:
                resolved.append(gp_id)
        return resolved

    def sessions_for(self, group_player_id):
        return set(self._sessions.get(group_player_id, ()))


def load_identity_map(session_ids):
    """Build the identity map for every linked player in ``session_ids``."""
    session_ids = list(session_ids or [])
    if not session_ids:
        return IdentityMap()
    try:
        rows = db.session.query(
            SessionPlayer.id, SessionPlayer.session_id, SessionPlayer.group_player_id,
        ).filter(
            SessionPlayer.session_id.in_(session_ids),
            SessionPlayer.group_player_id.isnot(None),
        ).all()
    except SQLAlchemyError as exc:
        logger.error('Failed to fetch player links for %d sessions: %s', len(session_ids), exc)
        raise StorageError('Failed to fetch players', details=str(exc)) from exc

    links = {}
    sessions = {}
    for sp_id, session_id, gp_id in rows:
        links[sp_id] = gp_id
        sessions.setdefault(gp_id, set()).add(session_id)
    return IdentityMap(links, sessions)


def load_player_links(session_player_ids):
    """Identity map restricted to specific session players (single-game path)."""
    session_player_ids = [sp_id for sp_id in (session_player_ids or []) if sp_id]
    if not session_player_ids:
        return IdentityMap()
    try:
        rows = db.session.query(
            SessionPlayer.id, SessionPlayer.session_id, SessionPlayer.group_player_id,
        ).filter(SessionPlayer.id.in_(session_player_ids)).all()
    except SQLAlchemyError as exc:
        raise StorageError('Failed to fetch players', details=str(exc)) from exc

    links = {}
    sessions = {}
    for sp_id, session_id, gp_id in rows:
        if not gp_id:
            continue
        links[sp_id] = gp_id
        sessions.setdefault(gp_id, set()).add(session_id)
    return IdentityMap(links, sessions)


def link_session_player(session_player, group_player):
    """Link a session player to a group player from the session's group.

    Games already recorded for this session player only count towards the
    group player after the group is recalculated.
    """
    session = session_player.session
    if not session.group_id or group_player.group_id != session.group_id:
        raise ValueError('Player does not belong to this session\'s group')
    already_linked = SessionPlayer.query.filter(
        SessionPlayer.session_id == session.id,
        SessionPlayer.group_player_id == group_player.id,
        SessionPlayer.id != session_player.id,
    ).first()
    if already_linked:
        raise ValueError('Group player is already linked in this session')
    session_player.group_player_id = group_player.id
    db.session.commit()
    return session_player


def group_session_ids(group_id):
    """Session ids for a group, oldest session first."""
    try:
        rows = db.session.query(PlaySession.id).filter(
            PlaySession.group_id == group_id,
        ).order_by(PlaySession.date.asc(), PlaySession.created_at.asc()).all()
    except SQLAlchemyError as exc:
        logger.error('Failed to fetch sessions for group %s: %s', group_id, exc)
        raise StorageError('Failed to fetch sessions', details=str(exc)) from exc
    return [row[0] for row in rows]
