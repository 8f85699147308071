"""Database models package for Brain Battle."""

from ..db_instance import db

from .user import PlayerStats, User
from .battle import BattleSession, CheatEventLog, GameResult

__all__ = [
    'db',
    'User',
    'PlayerStats',
    'BattleSession',
    'GameResult',
    'CheatEventLog',
]
