import json
from datetime import date, datetime, timedelta

import pytest
from birdie.app import create_app, db
from birdie.models import Group, GroupPlayer, PlaySession, SessionPlayer, Game


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class Seeder:
    """Writes rows straight through the models; never touches ratings."""

    def __init__(self):
        self._clock = datetime(2024, 3, 7, 18, 0)

    def group(self, *names, name='Thursday Club'):
        group = Group(name=name)
        db.session.add(group)
        db.session.flush()
        players = {}
        for player_name in names:
            player = GroupPlayer(group_id=group.id, name=player_name)
            db.session.add(player)
            players[player_name] = player
        db.session.commit()
        return group, players

    def session(self, group, linked, guests=(), game_mode='doubles', day=None):
        """``linked`` maps session player names to GroupPlayers."""
        session = PlaySession(
            group_id=group.id if group else None,
            name='Evening session',
            date=day or date(2024, 3, 7),
            game_mode=game_mode,
        )
        db.session.add(session)
        db.session.flush()
        players = {}
        for player_name, group_player in linked.items():
            players[player_name] = SessionPlayer(
                session_id=session.id, name=player_name,
                group_player_id=group_player.id if group_player else None,
            )
        for player_name in guests:
            players[player_name] = SessionPlayer(session_id=session.id, name=player_name)
        db.session.add_all(players.values())
        db.session.commit()
        return session, players

    def game(self, session, team_a, team_b, winner, scores=(None, None)):
        """Record a game row; the clock advances so replay order is explicit."""
        self._clock += timedelta(minutes=15)
        number = Game.query.filter_by(session_id=session.id).count() + 1
        game = Game(
            id=f'{session.id}-game-{number}',
            session_id=session.id,
            game_number=number,
            team_a=json.dumps([p.id for p in team_a]),
            team_b=json.dumps([p.id for p in team_b]),
            winning_team=winner,
            team_a_score=scores[0],
            team_b_score=scores[1],
            created_at=self._clock,
        )
        db.session.add(game)
        db.session.commit()
        return game


@pytest.fixture
def seed(app):
    return Seeder()
