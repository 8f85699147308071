"""Bootstrap helpers for configuring the Flask application."""

from __future__ import annotations

from flask import Flask

from ..extensions import db, login_manager, scheduler
from .error_handlers import error_response
from .error_handlers import register_error_handlers as _register_error_handlers
from .logging_config import setup_logging
from .module_registry import register_default_modules


def configure_logging(app: Flask) -> None:
    """Attach console (and optional file) handlers to the app logger tree.

    The Flask app is named ``brainbattle_app``, so ``app.logger`` is the root of
    that tree and engine loggers inherit its handlers.
    """

    setup_logging(
        app,
        log_level="DEBUG" if app.debug else app.config.get("LOG_LEVEL", "INFO"),
        log_dir=app.config.get("LOG_DIR"),
    )
    app.logger.propagate = False


def register_extensions(app: Flask) -> None:
    """Initialize shared extensions with the Flask app instance."""

    db.init_app(app)
    login_manager.init_app(app)

    if not app.config.get("SCHEDULER_AUTOSTART", True):
        return

    from apscheduler.schedulers import SchedulerAlreadyRunningError

    try:
        scheduler.init_app(app)
        if not scheduler.running:
            scheduler.start()

        from ..modules.battle.services.maintenance_service import sweep_stale_sessions

        if not scheduler.get_job("battle_stale_session_sweep"):
            scheduler.add_job(
                id="battle_stale_session_sweep",
                func=sweep_stale_sessions,
                args=[app],
                trigger="interval",
                hours=1,
                replace_existing=True,
            )
            app.logger.info("Registered stale battle session sweep (hourly).")
    except SchedulerAlreadyRunningError:
        app.logger.info("Scheduler already running, skipping re-initialisation.")
    except Exception as e:
        app.logger.error(f"Failed to initialise scheduler: {e}")


def register_user_loader(app: Flask) -> None:
    """Wire Flask-Login to the user table and answer JSON for API callers."""

    @login_manager.user_loader
    def load_user(user_id: str):
        from ..models import User

        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return error_response("Authentication required", "UNAUTHORIZED", 401)


def register_error_handlers(app: Flask) -> None:
    """Register the JSON error envelope handlers."""

    _register_error_handlers(app)


def register_blueprints(app: Flask) -> None:
    """Register all default blueprints with the app."""

    register_default_modules(app)


def initialize_database(app: Flask) -> None:
    """Create database tables."""

    from .. import models  # noqa: F401  (registers the tables)

    db.create_all()
    app.logger.info("Database tables ready at %s", app.config.get("SQLALCHEMY_DATABASE_URI"))
