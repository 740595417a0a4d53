"""Team shapes: a singles team has one player, a doubles team two."""
from typing import NamedTuple

from birdie.services.errors import InvalidTeamError

_TEAM_SIZES = {'singles': 1, 'doubles': 2}


class Singles(NamedTuple):
    player: str


class Doubles(NamedTuple):
    first: str
    second: str


def team_size(game_mode):
    if game_mode not in _TEAM_SIZES:
        raise InvalidTeamError(f'Unknown game mode: {game_mode}')
    return _TEAM_SIZES[game_mode]


def make_team(raw_ids, game_mode):
    """Build a Singles or Doubles team from a list of session player ids."""
    if not isinstance(raw_ids, (list, tuple)):
        raise InvalidTeamError('Team must be a list of player ids')
    ids = [str(raw).strip() for raw in raw_ids if raw is not None and str(raw).strip()]
    expected = team_size(game_mode)
    if len(ids) != len(raw_ids) or len(ids) != expected:
        raise InvalidTeamError(f'{game_mode.capitalize()} requires {expected} per team')
    if len(set(ids)) != len(ids):
        raise InvalidTeamError('A player cannot appear twice on one team')
    if expected == 1:
        return Singles(ids[0])
    return Doubles(ids[0], ids[1])


def validate_matchup(team_a, team_b):
    """Reject matchups where a player is on both sides."""
    overlap = set(team_a) & set(team_b)
    if overlap:
        raise InvalidTeamError('Duplicate players across teams')
