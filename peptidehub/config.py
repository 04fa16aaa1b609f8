"""Configuration helpers."""
from __future__ import annotations

import os

from .reset_limiter import CLEANUP_INTERVAL_SECONDS, MAX_ATTEMPTS, WINDOW_SECONDS


class BaseConfig:
    """Default configuration that can be overridden per environment."""

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", "sqlite:///peptidehub.db"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECURITY_PASSWORD_SALT = os.environ.get(
        "SECURITY_PASSWORD_SALT", "change-this-salt"
    )

    # Mail setup: configure for SMTP provider or Mailtrap for testing.
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "sandbox.smtp.mailtrap.io")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", 2525))
    MAIL_USE_TLS = True
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME", "mailtrap-user")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD", "mailtrap-pass")
    MAIL_DEFAULT_SENDER = os.environ.get(
        "MAIL_DEFAULT_SENDER", "no-reply@peptidehub.example"
    )

    # The API is JSON-only; CSRF tokens are checked for form posts only.
    WTF_CSRF_CHECK_DEFAULT = False
    WTF_CSRF_TIME_LIMIT = None

    # Password reset token expiration (seconds).
    PASSWORD_RESET_TOKEN_MAX_AGE = int(os.environ.get("RESET_TOKEN_AGE", 3600))

    # Password reset throttling.
    RESET_LIMITER_WINDOW_SECONDS = int(
        os.environ.get("RESET_LIMITER_WINDOW_SECONDS", WINDOW_SECONDS)
    )
    RESET_LIMITER_MAX_ATTEMPTS = int(
        os.environ.get("RESET_LIMITER_MAX_ATTEMPTS", MAX_ATTEMPTS)
    )
    RESET_LIMITER_CLEANUP_INTERVAL = int(
        os.environ.get("RESET_LIMITER_CLEANUP_INTERVAL", CLEANUP_INTERVAL_SECONDS)
    )
    RESET_LIMITER_AUTOSTART = True


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    RESET_LIMITER_AUTOSTART = False
