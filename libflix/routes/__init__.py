"""
Routes package initialization.
Registers all blueprint modules for the LibFlix application.
"""

import logging

logger = logging.getLogger(__name__)

from .cover_routes import cover_bp


def register_blueprints(app):
    """Register all blueprints with the Flask application."""
    app.register_blueprint(cover_bp)
    logger.debug("All blueprints registered successfully")
