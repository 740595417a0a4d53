"""
Game Outcome Processor: applies one game's result to the group players involved.

- Forward: ratings move by a per-team delta applied to each player's own rating;
  wins/losses/total_games are incremented.
- Reverse: only wins/losses/total_games are rolled back. The rating delta depended
  on team averages at the time, which later games may have changed, so ratings
  are corrected only by replaying history (see recalculation.py).
- Writes are best effort: every player row is written and committed on its own.
  A failed write is logged and reported on that player's result; peers that were
  already written stay written.
"""
import logging
from dataclasses import dataclass, asdict
from typing import List, Optional

from flask import current_app, has_app_context
from sqlalchemy.exc import SQLAlchemyError

from birdie.app import db
from birdie.models import GroupPlayer, TEAM_LABELS
from birdie.services import elo
from birdie.services.errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class RatingUpdate:
    """Rating change for one player from one game. Never stored."""
    group_player_id: str
    old_rating: int
    new_rating: int
    won: bool
    persisted: bool = False
    error: Optional[str] = None

    @property
    def change(self):
        return self.new_rating - self.old_rating

    def to_dict(self):
        data = asdict(self)
        data['change'] = self.change
        return data


@dataclass
class WriteResult:
    group_player_id: str
    ok: bool
    error: Optional[str] = None


def engine_settings():
    if has_app_context():
        cfg = current_app.config
        return (
            cfg.get('ELO_DEFAULT_RATING', elo.DEFAULT_ELO),
            cfg.get('ELO_K_FACTOR', elo.K_FACTOR),
            cfg.get('ELO_RATING_FLOOR', elo.RATING_FLOOR),
        )
    return elo.DEFAULT_ELO, elo.K_FACTOR, elo.RATING_FLOOR


def _clean_ids(ids):
    return [str(gp_id) for gp_id in (ids or []) if gp_id]


def _check_winning_team(winning_team):
    if winning_team not in TEAM_LABELS:
        raise ValueError(f"winning_team must be 'A' or 'B', got {winning_team!r}")


def fetch_ratings(group_player_ids, default=elo.DEFAULT_ELO):
    """Current rating per id; ids with no row get the default rating."""
    ids = list(dict.fromkeys(group_player_ids))
    if not ids:
        return {}
    try:
        rows = db.session.query(GroupPlayer.id, GroupPlayer.elo_rating).filter(
            GroupPlayer.id.in_(ids),
        ).all()
    except SQLAlchemyError as exc:
        logger.error('Failed to fetch ratings for %s: %s', ids, exc)
        raise StorageError('Failed to fetch player ratings', details=str(exc)) from exc

    ratings = {gp_id: rating or default for gp_id, rating in rows}
    for gp_id in ids:
        ratings.setdefault(gp_id, default)
    return ratings


def _write_player(group_player_id, apply_change):
    try:
        player = db.session.get(GroupPlayer, group_player_id)
        if player is None:
            logger.warning('Skipping update for missing group player %s', group_player_id)
            return WriteResult(group_player_id, False, 'Group player not found')
        apply_change(player)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.warning('Failed to update group player %s: %s', group_player_id, exc)
        return WriteResult(group_player_id, False, str(exc))
    return WriteResult(group_player_id, True)


def _record_result(new_rating, won):
    def apply_change(player):
        player.elo_rating = new_rating
        if won:
            player.wins = (player.wins or 0) + 1
        else:
            player.losses = (player.losses or 0) + 1
        player.total_games = player.wins + (player.losses or 0)
    return apply_change


def _undo_result(won):
    def apply_change(player):
        wins = player.wins or 0
        losses = player.losses or 0
        if won:
            wins = max(0, wins - 1)
        else:
            losses = max(0, losses - 1)
        player.wins = wins
        player.losses = losses
        player.total_games = wins + losses
    return apply_change


def calculate_rating_updates(team_a_ids, team_b_ids, winning_team, ratings,
                             k_factor=elo.K_FACTOR, floor=elo.RATING_FLOOR,
                             default=elo.DEFAULT_ELO):
    """Compute (without persisting) the rating update for every player in the game."""
    team_a_ratings = [ratings.get(gp_id, default) for gp_id in team_a_ids]
    team_b_ratings = [ratings.get(gp_id, default) for gp_id in team_b_ids]
    team_a_before = elo.team_rating(team_a_ratings, default=default)
    team_b_before = elo.team_rating(team_b_ratings, default=default)

    updates = []
    for team_ids, label, before, opponent in [
        (team_a_ids, 'A', team_a_before, team_b_before),
        (team_b_ids, 'B', team_b_before, team_a_before),
    ]:
        won = winning_team == label
        after = elo.updated_rating(before, opponent, won, k_factor=k_factor, floor=floor)
        for gp_id in team_ids:
            old_rating = ratings.get(gp_id, default)
            updates.append(RatingUpdate(
                group_player_id=gp_id,
                old_rating=old_rating,
                new_rating=elo.apply_team_delta(old_rating, before, after, floor=floor),
                won=won,
            ))
    return updates


def process_game_result(team_a_ids, team_b_ids, winning_team) -> List[RatingUpdate]:
    """Apply a newly recorded result to every linked player in the game.

    Args:
        team_a_ids: Group player ids on team A (guests as None are dropped).
        team_b_ids: Group player ids on team B.
        winning_team: 'A' or 'B'.

    Returns:
        One RatingUpdate per player, with ``persisted`` telling whether the
        write for that player went through.
    """
    _check_winning_team(winning_team)
    team_a = _clean_ids(team_a_ids)
    team_b = _clean_ids(team_b_ids)
    if not team_a and not team_b:
        return []

    default, k_factor, floor = engine_settings()
    ratings = fetch_ratings(team_a + team_b, default=default)
    updates = calculate_rating_updates(
        team_a, team_b, winning_team, ratings,
        k_factor=k_factor, floor=floor, default=default,
    )

    for update in updates:
        result = _write_player(
            update.group_player_id, _record_result(update.new_rating, update.won),
        )
        update.persisted = result.ok
        update.error = result.error

    failed = [u.group_player_id for u in updates if not u.persisted]
    if failed:
        logger.warning('Game result partially applied; failed players: %s', failed)
    return updates


def reverse_game_result(team_a_ids, team_b_ids, previous_winning_team) -> List[WriteResult]:
    """Take back the win/loss credit of a previously applied result.

    Ratings are left as they are; run a group recalculation to correct them.
    """
    if previous_winning_team is None:
        return []
    _check_winning_team(previous_winning_team)

    results = []
    for team_ids, label in [(_clean_ids(team_a_ids), 'A'), (_clean_ids(team_b_ids), 'B')]:
        won = previous_winning_team == label
        for gp_id in team_ids:
            results.append(_write_player(gp_id, _undo_result(won)))
    return results
