"""Rebuild a group's ratings and records by replaying its game history.

ELO updates are path dependent, so games are replayed strictly in the order
they were recorded. The replay must not overlap with new results being recorded
for the same group; callers serialize it (it is only exposed to admin paths).
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from birdie.app import db
from birdie.models import Game, GroupPlayer
from birdie.services.errors import StorageError
from birdie.services.identity import group_session_ids, load_identity_map
from birdie.services.outcomes import engine_settings, process_game_result

logger = logging.getLogger(__name__)


def _reset_group_players(group_id, default_rating):
    try:
        count = GroupPlayer.query.filter(GroupPlayer.group_id == group_id).update({
            'elo_rating': default_rating,
            'wins': 0,
            'losses': 0,
            'total_games': 0,
        }, synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error('Failed to reset players for group %s: %s', group_id, exc)
        raise StorageError('Failed to reset group players', details=str(exc)) from exc
    # Bulk update bypasses the identity map.
    db.session.expire_all()
    return count


def recorded_games(session_ids):
    """Games with a result in the given sessions, in replay order."""
    if not session_ids:
        return []
    try:
        return Game.query.filter(
            Game.session_id.in_(session_ids),
            Game.winning_team.isnot(None),
        ).order_by(
            Game.created_at.asc(), Game.game_number.asc(), Game.id.asc(),
        ).all()
    except SQLAlchemyError as exc:
        logger.error('Failed to fetch games for sessions %s: %s', session_ids, exc)
        raise StorageError('Failed to fetch games', details=str(exc)) from exc


def recalculate_group(group_id):
    """Reset every group player and replay all recorded games in order.

    Running this twice with no writes in between leaves identical state.
    """
    default_rating, _, _ = engine_settings()
    logger.info('Recalculating ratings for group %s', group_id)

    players_reset = _reset_group_players(group_id, default_rating)
    session_ids = group_session_ids(group_id)
    games = recorded_games(session_ids)
    identities = load_identity_map(session_ids)

    games_replayed = 0
    failed_writes = 0
    for game in games:
        team_a = identities.resolve_team(game.team_a_ids)
        team_b = identities.resolve_team(game.team_b_ids)
        if not team_a and not team_b:
            continue
        updates = process_game_result(team_a, team_b, game.winning_team)
        games_replayed += 1
        failed_writes += sum(1 for update in updates if not update.persisted)

    logger.info(
        'Recalculated group %s: %d players reset, %d games replayed, %d failed writes',
        group_id, players_reset, games_replayed, failed_writes,
    )
    return {
        'group_id': group_id,
        'players_reset': players_reset,
        'games_replayed': games_replayed,
        'failed_writes': failed_writes,
    }
