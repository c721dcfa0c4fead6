"""Flask application factory."""

import os

from flask import Flask
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from lvlai.config import config

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()


def create_app(config_name: str | None = None) -> Flask:
    """Create and configure the Flask application."""
    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Logging and error tracking
    from lvlai.extensions import init_sentry, limiter
    from lvlai.logging_config import setup_logging

    setup_logging(app)
    init_sentry(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # CORS
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)

    # Register blueprints
    from lvlai.api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api/v1")

    # Error envelopes
    from lvlai.utils import server_error, unauthorized

    @jwt.unauthorized_loader
    def missing_token(reason):
        return unauthorized(reason)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return unauthorized(reason)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return unauthorized("Token has expired")

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        app.logger.error(
            f"Unhandled error: {getattr(error, 'original_exception', error)!r}"
        )
        return server_error()

    # Health check endpoint
    @app.route("/health")
    def health():
        return {"status": "ok"}

    # Shell context
    @app.shell_context_processor
    def make_shell_context():
        from lvlai.models import AIUsageLog, FocusSession, User

        return {
            "db": db,
            "User": User,
            "FocusSession": FocusSession,
            "AIUsageLog": AIUsageLog,
        }

    return app
