"""Database models."""
from __future__ import annotations

from datetime import datetime

from flask import current_app
from flask_login import UserMixin
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db, login_manager


def _reset_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(
        current_app.config["SECRET_KEY"],
        salt=current_app.config["SECURITY_PASSWORD_SALT"],
    )


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    profile = db.relationship("Profile", back_populates="user", uselist=False, cascade="all, delete-orphan")
    settings = db.relationship("UserSettings", back_populates="user", uselist=False, cascade="all, delete-orphan")
    protocols = db.relationship("Protocol", back_populates="creator", cascade="all, delete-orphan")

    def set_password(self, password: str) -> None:
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def generate_reset_token(self) -> str:
        return _reset_serializer().dumps({"user_id": self.id})

    @staticmethod
    def verify_reset_token(token: str, max_age: int | None = None) -> "User | None":
        if max_age is None:
            max_age = current_app.config["PASSWORD_RESET_TOKEN_MAX_AGE"]
        try:
            data = _reset_serializer().loads(token, max_age=max_age)
        except SignatureExpired:
            return None
        except BadSignature:
            return None
        user_id = data.get("user_id")
        if user_id is None:
            return None
        return db.session.get(User, user_id)


PROFILE_FIELDS = ("display_name", "bio", "location", "professional_title", "avatar_url")
SETTINGS_FIELDS = ("theme", "language", "is_public", "email_notifications", "stack_notifications")
THEMES = ("light", "dark")
DEFAULT_SETTINGS = {
    "theme": "light",
    "language": "en",
    "is_public": True,
    "email_notifications": True,
    "stack_notifications": True,
}


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    display_name = db.Column(db.String(255))
    bio = db.Column(db.Text)
    location = db.Column(db.String(255))
    professional_title = db.Column(db.String(255))
    avatar_url = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="profile")

    def to_dict(self) -> dict:
        data = {field: getattr(self, field) for field in PROFILE_FIELDS}
        data["username"] = self.user.username
        data["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return data


class UserSettings(db.Model):
    __tablename__ = "user_settings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    theme = db.Column(db.String(16), default="light", nullable=False)
    language = db.Column(db.String(16), default="en", nullable=False)
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    email_notifications = db.Column(db.Boolean, default=True, nullable=False)
    stack_notifications = db.Column(db.Boolean, default=True, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User", back_populates="settings")

    def to_dict(self) -> dict:
        return {field: getattr(self, field) for field in SETTINGS_FIELDS}


protocol_categories = db.Table(
    "protocol_categories",
    db.Column("protocol_id", db.Integer, db.ForeignKey("protocols.id"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("categories.id"), primary_key=True),
)


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    emoji = db.Column(db.String(16))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "emoji": self.emoji}


class Protocol(db.Model):
    __tablename__ = "protocols"

    id = db.Column(db.Integer, primary_key=True)
    creator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=False)
    version = db.Column(db.Integer, default=1, nullable=False)
    is_public = db.Column(db.Boolean, default=True, nullable=False)
    is_draft = db.Column(db.Boolean, default=False, nullable=False)
    is_deleted = db.Column(db.Boolean, default=False, nullable=False)
    deleted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = db.relationship("User", back_populates="protocols")
    supplements = db.relationship(
        "Supplement",
        back_populates="protocol",
        cascade="all, delete-orphan",
        order_by="Supplement.position",
    )
    categories = db.relationship("Category", secondary=protocol_categories, order_by="Category.name")
    reviews = db.relationship("Review", back_populates="protocol", cascade="all, delete-orphan")
    comments = db.relationship("Comment", back_populates="protocol", cascade="all, delete-orphan")

    def dosage_summary(self) -> str:
        return "; ".join(s.summary() for s in self.supplements)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "creator_id": self.creator_id,
            "version": self.version,
            "is_public": self.is_public,
            "is_draft": self.is_draft,
            "categories": [c.to_dict() for c in self.categories],
            "supplements": [s.to_dict() for s in self.supplements],
            "dosage": self.dosage_summary(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Supplement(db.Model):
    """One line of a protocol: what is taken, how much, how often and how."""

    __tablename__ = "supplements"
    __table_args__ = (
        db.CheckConstraint("dosage_amount > 0", name="ck_supplements_dosage"),
        db.CheckConstraint("frequency_amount >= 1", name="ck_supplements_frequency"),
    )

    id = db.Column(db.Integer, primary_key=True)
    protocol_id = db.Column(db.Integer, db.ForeignKey("protocols.id"), nullable=False, index=True)
    position = db.Column(db.Integer, default=0, nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    dosage_amount = db.Column(db.Float, nullable=False)
    dosage_unit = db.Column(db.String(32), nullable=False)
    frequency_amount = db.Column(db.Integer, default=1, nullable=False)
    frequency_schedule = db.Column(db.String(64), nullable=False)
    administration_method = db.Column(db.String(64), nullable=False)
    notes = db.Column(db.Text)

    protocol = db.relationship("Protocol", back_populates="supplements")

    def summary(self) -> str:
        return (
            f"{self.name}: {self.dosage_amount:g}{self.dosage_unit} "
            f"{self.frequency_amount}x {self.frequency_schedule} ({self.administration_method})"
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "dosage_amount": self.dosage_amount,
            "dosage_unit": self.dosage_unit,
            "frequency_amount": self.frequency_amount,
            "frequency_schedule": self.frequency_schedule,
            "administration_method": self.administration_method,
            "notes": self.notes,
        }


class SavedProtocol(db.Model):
    __tablename__ = "saved_protocols"
    __table_args__ = (db.UniqueConstraint("user_id", "protocol_id"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    protocol_id = db.Column(db.Integer, db.ForeignKey("protocols.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    protocol = db.relationship("Protocol")


class Review(db.Model):
    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint("user_id", "protocol_id"),
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    protocol_id = db.Column(db.Integer, db.ForeignKey("protocols.id"), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    content = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    protocol = db.relationship("Protocol", back_populates="reviews")


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    protocol_id = db.Column(db.Integer, db.ForeignKey("protocols.id"), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("comments.id"))
    content = db.Column(db.Text, nullable=False)
    is_edited = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    protocol = db.relationship("Protocol", back_populates="comments")
    author = db.relationship("User")
    votes = db.relationship("CommentVote", back_populates="comment", cascade="all, delete-orphan")
    replies = db.relationship(
        "Comment",
        backref=db.backref("parent", remote_side=[id]),
        cascade="all, delete-orphan",
        order_by="Comment.created_at",
    )

    def vote_of(self, user_id: int | None) -> str | None:
        if user_id is None:
            return None
        for vote in self.votes:
            if vote.user_id == user_id:
                return vote.direction
        return None

    def to_dict(self, with_replies: bool = False, viewer_id: int | None = None) -> dict:
        data = {
            "id": self.id,
            "author": self.author.username,
            "author_id": self.author_id,
            "parent_id": self.parent_id,
            "content": self.content,
            "is_edited": self.is_edited,
            "user_vote": self.vote_of(viewer_id),
            "created_at": self.created_at.isoformat(),
        }
        if with_replies:
            data["replies"] = [reply.to_dict(viewer_id=viewer_id) for reply in self.replies]
        return data


class CommentVote(db.Model):
    __tablename__ = "comment_votes"
    __table_args__ = (db.UniqueConstraint("user_id", "comment_id"),)

    id = db.Column(db.Integer, primary_key=True)
    comment_id = db.Column(db.Integer, db.ForeignKey("comments.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    is_upvote = db.Column(db.Boolean, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    comment = db.relationship("Comment", back_populates="votes")

    @property
    def direction(self) -> str:
        return "up" if self.is_upvote else "down"


@login_manager.user_loader
def load_user(user_id: str) -> User | None:
    return db.session.get(User, int(user_id))
