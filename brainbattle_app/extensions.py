"""Application-wide extensions.

This module centralizes extension instances so they can be imported without
causing circular dependencies between models, services and blueprints.
"""

from flask_apscheduler import APScheduler
from flask_login import LoginManager

from .db_instance import db

login_manager = LoginManager()
login_manager.session_protection = "basic"

scheduler = APScheduler()

__all__ = ["db", "login_manager", "scheduler"]
