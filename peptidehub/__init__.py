"""Application factory for the PeptideHub backend."""
from __future__ import annotations

import atexit

from flask import Flask
from werkzeug.exceptions import HTTPException

from .config import BaseConfig
from .extensions import csrf, db, login_manager, mail, migrate
from .auth import auth_bp
from .protocols import protocol_bp
from .failed_login import FailedLoginTracker
from .models import Category
from .reset_limiter import ResetAttemptLimiter

DEFAULT_CATEGORIES = (
    ("Recovery", "\N{FLEXED BICEPS}"),
    ("Longevity", "\N{HOURGLASS}"),
    ("Cognition", "\N{BRAIN}"),
    ("Sleep", "\N{SLEEPING SYMBOL}"),
    ("Metabolic", "\N{FIRE}"),
    ("Skin & Hair", "\N{SPARKLES}"),
)


def seed_categories() -> int:
    """Insert missing default categories. Returns how many were added."""
    existing = {name for (name,) in db.session.query(Category.name)}
    missing = [Category(name=name, emoji=emoji) for name, emoji in DEFAULT_CATEGORIES if name not in existing]
    db.session.add_all(missing)
    db.session.commit()
    return len(missing)


def create_app(config_object: type[BaseConfig] | None = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object or BaseConfig)

    # Initialize extensions.
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    mail.init_app(app)
    csrf.init_app(app)

    app.failed_login_tracker = FailedLoginTracker()
    app.reset_limiter = ResetAttemptLimiter(
        window_seconds=app.config["RESET_LIMITER_WINDOW_SECONDS"],
        max_attempts=app.config["RESET_LIMITER_MAX_ATTEMPTS"],
        cleanup_interval=app.config["RESET_LIMITER_CLEANUP_INTERVAL"],
    )
    if app.config["RESET_LIMITER_AUTOSTART"]:
        app.reset_limiter.start()
        atexit.register(app.reset_limiter.stop)

    # Register blueprints.
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(protocol_bp, url_prefix="/protocols")

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return {"error": error.name, "description": error.description}, error.code

    # Provide CLI helper for local dev.
    @app.cli.command("create-db")
    def create_db_command() -> None:
        """Create tables using SQLAlchemy metadata for quick testing."""
        with app.app_context():
            db.create_all()
            print("Database tables created.")

    @app.cli.command("seed-categories")
    def seed_categories_command() -> None:
        """Insert the default protocol categories that are missing."""
        with app.app_context():
            added = seed_categories()
            print(f"Added {added} categories.")

    return app
