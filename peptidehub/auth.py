"""Authentication and account blueprint."""
from __future__ import annotations

import hashlib

from flask import Blueprint, abort, current_app, request
from flask_login import current_user, login_required, login_user, logout_user
from flask_mail import Message

from .extensions import db, mail
from .models import DEFAULT_SETTINGS, PROFILE_FIELDS, SETTINGS_FIELDS, THEMES, Profile, User, UserSettings
from .passwords import is_password_valid, validate_password
from .validation import clean_text, json_body


auth_bp = Blueprint("auth", __name__)

RESET_SENT_MESSAGE = "If the account exists, a reset email was sent."


def _normalize_email(value) -> str:
    return clean_text(value).lower()


def _email_digest(email: str) -> str:
    return hashlib.sha256(email.encode("utf-8")).hexdigest()[:12]


def _require_strong_password(password) -> None:
    if not isinstance(password, str):
        abort(400, description="Password must be a string")
    validation = validate_password(password)
    if not is_password_valid(validation):
        abort(
            400,
            description="Password too weak: " + ", ".join(validation.failed_checks()),
        )


def _validate_signup_payload(data: dict) -> tuple[str, str, str]:
    email = _normalize_email(data.get("email"))
    username = clean_text(data.get("username"))
    password = data.get("password")
    for field, value in (("email", email), ("password", password), ("username", username)):
        if not value:
            abort(400, description=f"Missing field: {field}")
    return email, password, username


def _send_reset_email(user: User, token: str) -> None:
    reset_url = f"{request.host_url.rstrip('/')}/auth/reset/{token}"
    msg = Message(
        subject="Reset your PeptideHub password",
        recipients=[user.email],
        body=f"Use the following link to reset your password: {reset_url}\n",
    )
    mail.send(msg)
    current_app.logger.info("Password reset email sent to user %s", user.id)


@auth_bp.route("/signup", methods=["POST"])
def signup() -> tuple[dict, int]:
    payload = json_body()
    email, password, username = _validate_signup_payload(payload)
    _require_strong_password(password)

    if User.query.filter_by(email=email).first():
        abort(400, description="Email already registered")
    if User.query.filter_by(username=username).first():
        abort(400, description="Username already taken")

    user = User(email=email, username=username)
    user.set_password(password)
    user.profile = Profile(display_name=username)
    user.settings = UserSettings()

    db.session.add(user)
    db.session.commit()

    return {"message": "Account created", "id": user.id}, 201


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple[dict, int]:
    payload = json_body()
    email = _normalize_email(payload.get("email"))
    password = payload.get("password")

    user = User.query.filter_by(email=email).first() if email else None
    if not user or not isinstance(password, str) or not user.check_password(password):
        attempts = current_app.failed_login_tracker.increment(email or request.remote_addr)
        abort(401, description=f"Invalid credentials. Attempt #{attempts}")

    login_user(user, remember=bool(payload.get("remember_me")))
    current_app.failed_login_tracker.reset(email)
    return {"message": "Logged in", "username": user.username}, 200


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout() -> tuple[dict, int]:
    logout_user()
    return {"message": "Logged out"}, 200


@auth_bp.route("/me", methods=["GET"])
@login_required
def me() -> dict:
    return {"id": current_user.id, "email": current_user.email, "username": current_user.username}


@auth_bp.route("/profile", methods=["GET"])
@login_required
def get_profile() -> dict:
    if current_user.profile is None:
        current_user.profile = Profile(display_name=current_user.username)
        db.session.commit()
    return current_user.profile.to_dict()


@auth_bp.route("/profile", methods=["PUT"])
@login_required
def update_profile() -> dict:
    payload = json_body()
    profile = current_user.profile or Profile(user=current_user)
    for field in PROFILE_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if value is not None and not isinstance(value, str):
            abort(400, description=f"{field} must be a string")
        setattr(profile, field, value.strip() if value else None)
    db.session.add(profile)
    db.session.commit()
    return profile.to_dict()


@auth_bp.route("/settings", methods=["GET"])
@login_required
def get_settings() -> dict:
    if current_user.settings is None:
        # Defaults apply until the user saves settings once.
        return dict(DEFAULT_SETTINGS)
    return current_user.settings.to_dict()


@auth_bp.route("/settings", methods=["PUT"])
@login_required
def update_settings() -> dict:
    payload = json_body()
    settings = current_user.settings or UserSettings(user=current_user)
    for field in SETTINGS_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if field == "theme":
            if value not in THEMES:
                abort(400, description="Theme must be one of: " + ", ".join(THEMES))
        elif field == "language":
            value = clean_text(value)
            if not value:
                abort(400, description="Language required")
        elif not isinstance(value, bool):
            abort(400, description=f"{field} must be true or false")
        setattr(settings, field, value)
    db.session.add(settings)
    db.session.commit()
    return settings.to_dict()


@auth_bp.route("/request-reset", methods=["POST"])
def request_reset() -> tuple[dict, int]:
    payload = json_body()
    email = _normalize_email(payload.get("email"))
    if not email:
        abort(400, description="Email required")

    if not current_app.reset_limiter.check_and_record(email):
        current_app.logger.warning("Password reset throttled for email %s", _email_digest(email))
        abort(429, description="Too many reset attempts. Try again later.")

    user = User.query.filter_by(email=email).first()
    if user:
        _send_reset_email(user, user.generate_reset_token())
    # Same answer whether or not the account exists.
    return {"message": RESET_SENT_MESSAGE}, 200


@auth_bp.route("/reset/<token>", methods=["GET"])
def get_reset_form(token: str):
    user = User.verify_reset_token(token)
    if not user:
        abort(400, description="Invalid or expired token")
    return {"message": "Token valid. Submit new password via POST."}


@auth_bp.route("/reset/<token>", methods=["POST"])
def reset_password(token: str):
    user = User.verify_reset_token(token)
    if not user:
        abort(400, description="Invalid or expired token")

    payload = json_body()
    password = payload.get("password")
    if not password:
        abort(400, description="Password required")
    _require_strong_password(password)

    user.set_password(password)
    db.session.commit()
    return {"message": "Password updated"}
