"""Battle module: timed quiz battles, their scoring backend and anti-cheat reports."""

from flask import Blueprint

battle_api_bp = Blueprint('battle_api', __name__)

# Module Metadata
module_metadata = {
    'name': 'Brain Battle',
    'icon': 'swords',
    'category': 'Learning',
    'url_prefix': '/api/battle',
    'enabled': True
}


def setup_module(app):
    """Connect the battle signal listeners."""
    from . import events  # noqa: F401

    app.logger.debug("Battle module ready.")


from .routes import api  # noqa: E402,F401  # isort:skip
