import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
cache = Cache()
migrate = Migrate()


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Initialize extensions
    db.init_app(app)
    cache.init_app(app)
    migrate.init_app(app, db)

    # Import and register blueprints
    from parlay_club.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Setup logging
    from parlay_club.utils.logging_config import setup_logging

    setup_logging(app)

    # Show configuration status
    show_config_status(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Initialize and start background scheduler
    if not app.config.get("TESTING", False):
        from parlay_club.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    return app


def show_config_status(app, config_name):
    """Log configuration status"""
    logger.info(f"Parlay Club starting with '{config_name}' configuration")

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        logger.info(
            "Using SQLite database (%s)",
            "in-memory" if "memory" in db_url else "parlay_club.db file",
        )
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )

    logger.info(
        "Day buckets: modern regime from season %s, league timezone %s",
        app.config.get("MODERN_BUCKETING_SEASON"),
        app.config.get("LEAGUE_TIMEZONE"),
    )


def register_error_handlers(app):
    """Register global error handlers"""
    from parlay_club.utils.exceptions import (
        GameNotFound,
        IncompleteGame,
        InvalidPick,
        MalformedFinalScore,
        ParlayError,
        PersistenceFailure,
    )

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response

    @app.errorhandler(GameNotFound)
    def handle_game_not_found(error):
        return jsonify({"error": str(error)}), 404

    @app.errorhandler(IncompleteGame)
    def handle_incomplete_game(error):
        app.logger.warning(f"Incomplete game: {error} - Path: {request.path}")
        return jsonify({"error": str(error)}), 409

    @app.errorhandler(MalformedFinalScore)
    @app.errorhandler(InvalidPick)
    def handle_unprocessable(error):
        app.logger.warning(f"{type(error).__name__}: {error} - Path: {request.path}")
        return jsonify({"error": str(error)}), 422

    @app.errorhandler(PersistenceFailure)
    def handle_persistence_failure(error):
        db.session.rollback()
        app.logger.error(f"Persistence failure: {error} - Path: {request.path}")
        return jsonify({"error": "Storage temporarily unavailable"}), 503

    @app.errorhandler(ParlayError)
    def handle_parlay_error(error):
        return jsonify({"error": str(error)}), 400

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "Bad request"}), 400


from parlay_club import models  # noqa: F401, E402 - imported for model registration
