"""Shared extensions."""
from __future__ import annotations

from flask import abort
from flask_login import LoginManager
from flask_mail import Mail
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect


db = SQLAlchemy()
login_manager = LoginManager()
mail = Mail()
csrf = CSRFProtect()
migrate = Migrate()


@login_manager.unauthorized_handler
def unauthorized():
    # JSON clients get a 401 rather than a redirect to a login page.
    abort(401, description="Login required")
