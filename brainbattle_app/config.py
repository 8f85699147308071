# File: brainbattle_app/config.py

import os

from dotenv import load_dotenv

load_dotenv()

# brainbattle_app/ sits directly under the project root
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))

DATABASE_PATH = os.path.join(BASE_DIR, "database", "brainbattle.db")


class Config:
    """Application configuration for Brain Battle."""

    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Fallback for development, env is preferred
        SECRET_KEY = 'dev-secret-key-replace-in-production'

    SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI') or f'sqlite:///{DATABASE_PATH}'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'connect_args': {'timeout': 30},
    }
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOG_DIR = os.environ.get('LOG_DIR')

    # Background jobs (stale session sweep)
    SCHEDULER_AUTOSTART = os.environ.get('SCHEDULER_AUTOSTART', '1') not in ('0', 'false', 'False')
    SCHEDULER_API_ENABLED = False
    STALE_SESSION_HOURS = int(os.environ.get('STALE_SESSION_HOURS', 24))

    RECENT_BATTLES_LIMIT = 10

    @classmethod
    def init_app(cls, app):
        """Create the directories the configuration points at."""
        uri = app.config.get('SQLALCHEMY_DATABASE_URI', '')
        if uri == f'sqlite:///{DATABASE_PATH}':
            os.makedirs(os.path.dirname(DATABASE_PATH), exist_ok=True)
        log_dir = app.config.get('LOG_DIR')
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
