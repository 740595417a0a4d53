import json
import uuid
from birdie.app import db
from birdie.services.elo import DEFAULT_ELO
from birdie.time_utils import utcnow_naive, isoformat_or_none

GAME_MODES = ('doubles', 'singles')
TEAM_LABELS = ('A', 'B')


def _new_id():
    return uuid.uuid4().hex


def _safe_json(raw_value, fallback=None):
    if fallback is None:
        fallback = {}
    if not raw_value:
        return fallback
    if isinstance(raw_value, (list, dict)):
        return raw_value
    try:
        return json.loads(raw_value)
    except (TypeError, ValueError):
        return fallback


class Group(db.Model):
    """A standing group of players that shares one rating pool."""
    __tablename__ = 'groups'

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False)
    shareable_link = db.Column(db.String(64), unique=True, nullable=False,
                               default=lambda: uuid.uuid4().hex[:12])
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    def to_dict(self):
        return {
            'id': self.id, 'name': self.name,
            'shareable_link': self.shareable_link,
            'created_at': isoformat_or_none(self.created_at),
        }


class GroupPlayer(db.Model):
    """Durable cross-session identity owning a rating and win/loss record."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    group_id = db.Column(db.String(36), db.ForeignKey('groups.id'), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    elo_rating = db.Column(db.Integer, default=DEFAULT_ELO, nullable=False)
    wins = db.Column(db.Integer, default=0, nullable=False)
    losses = db.Column(db.Integer, default=0, nullable=False)
    total_games = db.Column(db.Integer, default=0, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_group_player_group_active', 'group_id', 'is_active'),
    )

    group = db.relationship('Group', backref='players')

    def to_dict(self):
        return {
            'id': self.id, 'group_id': self.group_id, 'name': self.name,
            'elo_rating': self.elo_rating, 'wins': self.wins,
            'losses': self.losses, 'total_games': self.total_games,
            'is_active': self.is_active,
            'created_at': isoformat_or_none(self.created_at),
        }


# ── Sessions ──────────────────────────────────────────────────────────

class PlaySession(db.Model):
    """One evening of play. Sessions without a group never affect ratings."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    group_id = db.Column(db.String(36), db.ForeignKey('groups.id'), nullable=True)
    name = db.Column(db.String(200), default='')
    date = db.Column(db.Date, nullable=False)
    game_mode = db.Column(db.String(20), default='doubles', nullable=False)  # doubles, singles
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())

    group = db.relationship('Group', backref='sessions')
    players = db.relationship('SessionPlayer', backref='session', lazy='joined',
                              cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id, 'group_id': self.group_id, 'name': self.name,
            'date': isoformat_or_none(self.date), 'game_mode': self.game_mode,
            'players': [p.to_dict() for p in self.players],
            'created_at': isoformat_or_none(self.created_at),
        }


class SessionPlayer(db.Model):
    """Session-scoped player; group_player_id is null for guests."""
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    session_id = db.Column(db.String(36), db.ForeignKey('play_session.id'), nullable=False)
    name = db.Column(db.String(120), nullable=False)
    group_player_id = db.Column(db.String(36), db.ForeignKey('group_player.id'), nullable=True)

    __table_args__ = (
        db.Index('ix_session_player_group_player', 'group_player_id'),
    )

    def to_dict(self):
        return {
            'id': self.id, 'session_id': self.session_id, 'name': self.name,
            'group_player_id': self.group_player_id,
        }


class Game(db.Model):
    """A recorded (or scheduled, when winning_team is null) game within a session."""
    id = db.Column(db.String(80), primary_key=True)
    session_id = db.Column(db.String(36), db.ForeignKey('play_session.id'), nullable=False)
    game_number = db.Column(db.Integer, nullable=False)
    team_a = db.Column(db.Text, nullable=False)  # JSON list of session player ids
    team_b = db.Column(db.Text, nullable=False)
    winning_team = db.Column(db.String(1), nullable=True)  # 'A', 'B' or null
    team_a_score = db.Column(db.Integer, nullable=True)
    team_b_score = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=lambda: utcnow_naive())
    updated_at = db.Column(db.DateTime, default=lambda: utcnow_naive(),
                           onupdate=lambda: utcnow_naive())

    __table_args__ = (
        db.Index('ix_game_session_created', 'session_id', 'created_at'),
        db.UniqueConstraint('session_id', 'game_number', name='uq_game_session_number'),
    )

    session = db.relationship('PlaySession', backref=db.backref(
        'games', cascade='all, delete-orphan', order_by='Game.game_number',
    ))

    @property
    def team_a_ids(self):
        return list(_safe_json(self.team_a, fallback=[]))

    @property
    def team_b_ids(self):
        return list(_safe_json(self.team_b, fallback=[]))

    def to_dict(self):
        return {
            'id': self.id, 'session_id': self.session_id,
            'game_number': self.game_number,
            'team_a': self.team_a_ids, 'team_b': self.team_b_ids,
            'winning_team': self.winning_team,
            'team_a_score': self.team_a_score, 'team_b_score': self.team_b_score,
            'created_at': isoformat_or_none(self.created_at),
            'updated_at': isoformat_or_none(self.updated_at),
        }
