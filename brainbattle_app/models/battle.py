"""Battle session, result and cheat-report database models."""

from __future__ import annotations

from sqlalchemy.sql import func
from sqlalchemy.types import JSON

from ..db_instance import db


class BattleSession(db.Model):
    """A question set issued to one player under an opaque session id."""

    __tablename__ = 'battle_sessions'

    STATUS_ISSUED = 'issued'
    STATUS_SUBMITTED = 'submitted'
    STATUS_ABANDONED = 'abandoned'

    session_id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    topic = db.Column(db.String(200), nullable=False, default='General')
    difficulty = db.Column(db.String(20), nullable=False, default='medium')
    questions = db.Column(JSON, nullable=False)
    status = db.Column(db.String(20), default=STATUS_ISSUED, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    ended_at = db.Column(db.DateTime(timezone=True), nullable=True)

    owner = db.relationship('User', backref='battle_sessions')
    result = db.relationship('GameResult', uselist=False, backref='session', cascade='all, delete-orphan')


class GameResult(db.Model):
    """Server-confirmed outcome of a battle; at most one row per session."""

    __tablename__ = 'game_results'

    result_id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), db.ForeignKey('battle_sessions.session_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    topic = db.Column(db.String(200), nullable=True)
    final_score = db.Column(db.Integer, default=0, nullable=False)
    questions_answered = db.Column(db.Integer, default=0, nullable=False)
    correct_answers = db.Column(db.Integer, default=0, nullable=False)
    total_time = db.Column(db.Float, default=0.0, nullable=False)
    answers = db.Column(JSON, nullable=True)
    xp_earned = db.Column(db.Integer, default=0, nullable=False)
    old_xp = db.Column(db.Integer, default=0, nullable=False)
    new_xp = db.Column(db.Integer, default=0, nullable=False)
    breakdown = db.Column(JSON, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

    __table_args__ = (db.UniqueConstraint('session_id', name='uq_game_result_session'),)

    def to_dict(self):
        total = self.questions_answered or 0
        return {
            'id': self.result_id,
            'sessionId': self.session_id,
            'subject': self.topic,
            'score': f'{self.correct_answers}/{total}',
            'percentage': round((self.correct_answers / total) * 100) if total else 0,
            'duration': f'{round(self.total_time or 0)}s',
            'xpEarned': self.xp_earned,
            'completedAt': self.completed_at.isoformat() if self.completed_at else None,
        }


class CheatEventLog(db.Model):
    """Focus-loss violation reported by a client during a battle."""

    __tablename__ = 'cheat_event_logs'

    log_id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(64), db.ForeignKey('battle_sessions.session_id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.user_id'), nullable=False)
    violation_type = db.Column(db.String(30), nullable=False)
    duration_ms = db.Column(db.Integer, nullable=False)
    reported_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
