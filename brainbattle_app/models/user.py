"""User and player progression database models."""

from __future__ import annotations

from flask_login import UserMixin
from sqlalchemy.sql import func
from werkzeug.security import check_password_hash, generate_password_hash

from ..db_instance import db


class User(UserMixin, db.Model):
    """Application user model.

    Account management lives with the external auth provider; this table only
    keeps what Flask-Login and the scoring backend need.
    """

    __tablename__ = 'users'

    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    stats = db.relationship('PlayerStats', uselist=False, backref='user', cascade='all, delete-orphan')

    def get_id(self):
        return str(self.user_id)

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.username}>'


class PlayerStats(db.Model):
    """Aggregated XP and accuracy of a player, owned by the scoring backend."""

    __tablename__ = 'player_stats'

    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), primary_key=True)
    xp = db.Column(db.Integer, default=0, nullable=False)
    level = db.Column(db.Integer, default=1, nullable=False)
    total_games = db.Column(db.Integer, default=0, nullable=False)
    total_wins = db.Column(db.Integer, default=0, nullable=False)
    win_streak = db.Column(db.Integer, default=0, nullable=False)
    best_streak = db.Column(db.Integer, default=0, nullable=False)
    total_questions_answered = db.Column(db.Integer, default=0, nullable=False)
    correct_answers = db.Column(db.Integer, default=0, nullable=False)
    accuracy = db.Column(db.Float, default=0.0, nullable=False)
    favorite_subject = db.Column(db.String(200), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self):
        return {
            'xp': self.xp,
            'level': self.level,
            'total_games': self.total_games,
            'total_wins': self.total_wins,
            'win_streak': self.win_streak,
            'best_streak': self.best_streak,
            'total_questions_answered': self.total_questions_answered,
            'correct_answers': self.correct_answers,
            'accuracy': round(self.accuracy or 0.0, 1),
        }
