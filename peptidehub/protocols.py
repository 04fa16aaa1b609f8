"""Protocol endpoints: authoring, saving, reviews and comments."""
from __future__ import annotations

from datetime import datetime
from functools import wraps

from flask import Blueprint, abort, request
from flask_login import current_user, login_required
from sqlalchemy import or_

from .extensions import db
from .models import Category, Comment, CommentVote, Protocol, Review, SavedProtocol, Supplement
from .validation import clean_text, json_body


protocol_bp = Blueprint("protocols", __name__)

FLAG_FIELDS = ("is_public", "is_draft")
REQUIRED_SUPPLEMENT_FIELDS = {
    "dosage_unit": "a dosage unit",
    "frequency_schedule": "a frequency schedule",
    "administration_method": "an administration method",
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _optional_text(value) -> str | None:
    return clean_text(value) or None


def _parse_supplements(raw) -> list[Supplement]:
    """Build supplement rows from a request payload, rejecting invalid entries with 400."""
    if not isinstance(raw, list) or not raw:
        abort(400, description="Please add at least one supplement to the protocol")

    supplements = []
    for position, item in enumerate(raw):
        if not isinstance(item, dict):
            abort(400, description="Each supplement must be an object")
        name = clean_text(item.get("name"))
        if not name:
            abort(400, description="All supplements must have a name")
        dosage = item.get("dosage_amount")
        if not _is_number(dosage) or dosage <= 0:
            abort(400, description="All supplements must have a valid dosage amount")
        frequency = item.get("frequency_amount", 1)
        if not isinstance(frequency, int) or isinstance(frequency, bool) or frequency < 1:
            abort(400, description="Frequency amount must be a whole number of at least 1")
        required = {}
        for field, label in REQUIRED_SUPPLEMENT_FIELDS.items():
            required[field] = clean_text(item.get(field))
            if not required[field]:
                abort(400, description=f"All supplements must have {label}")
        supplements.append(
            Supplement(
                position=position,
                name=name,
                description=_optional_text(item.get("description")),
                dosage_amount=float(dosage),
                frequency_amount=frequency,
                notes=_optional_text(item.get("notes")),
                **required,
            )
        )
    return supplements


def _resolve_categories(raw) -> list[Category]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(_is_number(c) and int(c) == c for c in raw):
        abort(400, description="Categories must be a list of category ids")
    ids = {int(c) for c in raw}
    categories = Category.query.filter(Category.id.in_(ids)).all() if ids else []
    if len(categories) != len(ids):
        abort(400, description="Unknown category")
    return categories


def _visible_protocol(protocol_id: int) -> Protocol:
    """Fetch a protocol the current user may read, or 404."""
    protocol = db.session.get(Protocol, protocol_id)
    if protocol is None or protocol.is_deleted:
        abort(404, description="Protocol not found")
    is_owner = current_user.is_authenticated and protocol.creator_id == current_user.id
    if not is_owner and (not protocol.is_public or protocol.is_draft):
        abort(404, description="Protocol not found")
    return protocol


def _protocol_comment(protocol: Protocol, comment_id: int) -> Comment:
    comment = Comment.query.filter_by(id=comment_id, protocol_id=protocol.id).first()
    if comment is None:
        abort(404, description="Comment not found")
    return comment


def owner_required(func):
    """Ensure the current user created the target protocol."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        protocol_id = kwargs.get("protocol_id")
        if protocol_id is None:
            abort(400, description="Protocol id required")
        protocol = Protocol.query.filter_by(id=protocol_id, is_deleted=False).first()
        if not protocol:
            abort(404, description="Protocol not found")
        if protocol.creator_id != current_user.id:
            abort(403, description="Forbidden")
        return func(protocol, *args, **kwargs)

    return wrapper


@protocol_bp.route("/categories", methods=["GET"])
def list_categories():
    categories = Category.query.order_by(Category.name).all()
    return {"categories": [c.to_dict() for c in categories]}


@protocol_bp.route("/", methods=["GET"])
def list_protocols():
    query = Protocol.query.filter_by(is_public=True, is_draft=False, is_deleted=False)
    search = clean_text(request.args.get("q"))
    if search:
        query = query.filter(Protocol.name.ilike(f"%{search}%"))
    category_id = request.args.get("category", type=int)
    if category_id is not None:
        query = query.filter(Protocol.categories.any(Category.id == category_id))
    protocols = query.order_by(Protocol.created_at.desc(), Protocol.id.desc()).all()
    return {"protocols": [p.to_dict() for p in protocols]}


@protocol_bp.route("/", methods=["POST"])
@login_required
def create_protocol():
    payload = json_body()
    name = clean_text(payload.get("name"))
    description = clean_text(payload.get("description"))
    if not name or not description:
        abort(400, description="Name and description required")
    protocol = Protocol(
        name=name,
        description=description,
        is_public=bool(payload.get("is_public", True)),
        is_draft=bool(payload.get("is_draft", False)),
        creator=current_user,
        supplements=_parse_supplements(payload.get("supplements")),
        categories=_resolve_categories(payload.get("categories")),
    )
    db.session.add(protocol)
    db.session.commit()
    return {"id": protocol.id, "message": "Created"}, 201


@protocol_bp.route("/mine", methods=["GET"])
@login_required
def my_protocols():
    protocols = (
        Protocol.query.filter_by(creator_id=current_user.id, is_deleted=False)
        .order_by(Protocol.created_at.desc(), Protocol.id.desc())
        .all()
    )
    return {"protocols": [p.to_dict() for p in protocols]}


@protocol_bp.route("/saved", methods=["GET"])
@login_required
def saved_protocols():
    rows = (
        SavedProtocol.query.join(Protocol)
        .filter(SavedProtocol.user_id == current_user.id, Protocol.is_deleted.is_(False))
        .filter(or_(Protocol.is_public.is_(True), Protocol.creator_id == current_user.id))
        .order_by(SavedProtocol.created_at.desc())
        .all()
    )
    return {"protocols": [row.protocol.to_dict() for row in rows]}


@protocol_bp.route("/<int:protocol_id>", methods=["GET"])
def get_protocol(protocol_id: int):
    return _visible_protocol(protocol_id).to_dict()


@protocol_bp.route("/<int:protocol_id>", methods=["PUT"])
@login_required
@owner_required
def update_protocol(protocol: Protocol, protocol_id: int):
    payload = json_body()
    changed = False
    for field in ("name", "description"):
        if field not in payload:
            continue
        value = clean_text(payload[field])
        if not value:
            abort(400, description=f"{field.capitalize()} cannot be empty")
        if getattr(protocol, field) != value:
            setattr(protocol, field, value)
            changed = True
    for field in FLAG_FIELDS:
        if field in payload and getattr(protocol, field) != bool(payload[field]):
            setattr(protocol, field, bool(payload[field]))
            changed = True
    if "supplements" in payload:
        protocol.supplements = _parse_supplements(payload["supplements"])
        changed = True
    if "categories" in payload:
        categories = _resolve_categories(payload["categories"])
        if {c.id for c in categories} != {c.id for c in protocol.categories}:
            protocol.categories = categories
            changed = True
    if changed:
        protocol.version += 1
    db.session.commit()
    return {"message": "Updated", "version": protocol.version}


@protocol_bp.route("/<int:protocol_id>", methods=["DELETE"])
@login_required
@owner_required
def delete_protocol(protocol: Protocol, protocol_id: int):
    protocol.is_deleted = True
    protocol.deleted_at = datetime.utcnow()
    db.session.commit()
    return {"message": "Deleted"}, 200


@protocol_bp.route("/<int:protocol_id>/save", methods=["POST"])
@login_required
def save_protocol(protocol_id: int):
    protocol = _visible_protocol(protocol_id)
    existing = SavedProtocol.query.filter_by(user_id=current_user.id, protocol_id=protocol.id).first()
    if existing is None:
        db.session.add(SavedProtocol(user_id=current_user.id, protocol_id=protocol.id))
        db.session.commit()
    return {"saved": True}, 200


@protocol_bp.route("/<int:protocol_id>/save", methods=["DELETE"])
@login_required
def unsave_protocol(protocol_id: int):
    SavedProtocol.query.filter_by(user_id=current_user.id, protocol_id=protocol_id).delete()
    db.session.commit()
    return {"saved": False}, 200


@protocol_bp.route("/<int:protocol_id>/review", methods=["PUT"])
@login_required
def review_protocol(protocol_id: int):
    protocol = _visible_protocol(protocol_id)
    payload = json_body()
    rating = payload.get("rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        abort(400, description="Rating must be an integer from 1 to 5")

    review = Review.query.filter_by(user_id=current_user.id, protocol_id=protocol.id).first()
    if review is None:
        review = Review(user_id=current_user.id, protocol_id=protocol.id, rating=rating)
        db.session.add(review)
    review.rating = rating
    if "content" in payload:
        review.content = _optional_text(payload["content"])
    db.session.commit()
    return {"rating": review.rating, "content": review.content}, 200


@protocol_bp.route("/<int:protocol_id>/comments", methods=["GET"])
def list_comments(protocol_id: int):
    protocol = _visible_protocol(protocol_id)
    viewer_id = current_user.id if current_user.is_authenticated else None
    comments = (
        Comment.query.filter_by(protocol_id=protocol.id, parent_id=None)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
        .all()
    )
    return {"comments": [c.to_dict(with_replies=True, viewer_id=viewer_id) for c in comments]}


@protocol_bp.route("/<int:protocol_id>/comments", methods=["POST"])
@login_required
def add_comment(protocol_id: int):
    protocol = _visible_protocol(protocol_id)
    payload = json_body()
    content = clean_text(payload.get("content"))
    if not content:
        abort(400, description="Content required")

    parent_id = payload.get("parent_id")
    if parent_id is not None:
        parent = None
        if _is_number(parent_id):
            parent = Comment.query.filter_by(id=parent_id, protocol_id=protocol.id).first()
        # Replies nest one level only.
        if parent is None or parent.parent_id is not None:
            abort(400, description="Invalid parent comment")

    comment = Comment(
        protocol_id=protocol.id,
        author_id=current_user.id,
        parent_id=parent_id,
        content=content,
    )
    db.session.add(comment)
    db.session.commit()
    return comment.to_dict(), 201


@protocol_bp.route("/<int:protocol_id>/comments/<int:comment_id>", methods=["PUT"])
@login_required
def edit_comment(protocol_id: int, comment_id: int):
    comment = _protocol_comment(_visible_protocol(protocol_id), comment_id)
    if comment.author_id != current_user.id:
        abort(403, description="Forbidden")
    content = clean_text(json_body().get("content"))
    if not content:
        abort(400, description="Content required")
    if content != comment.content:
        comment.content = content
        comment.is_edited = True
    db.session.commit()
    return comment.to_dict(viewer_id=current_user.id)


@protocol_bp.route("/<int:protocol_id>/comments/<int:comment_id>/vote", methods=["PUT"])
@login_required
def vote_comment(protocol_id: int, comment_id: int):
    """Cast an up or down vote; repeating the same vote withdraws it."""
    comment = _protocol_comment(_visible_protocol(protocol_id), comment_id)
    is_upvote = json_body().get("is_upvote")
    if not isinstance(is_upvote, bool):
        abort(400, description="is_upvote must be true or false")

    vote = CommentVote.query.filter_by(comment_id=comment.id, user_id=current_user.id).first()
    if vote is None:
        db.session.add(CommentVote(comment_id=comment.id, user_id=current_user.id, is_upvote=is_upvote))
        result = "up" if is_upvote else "down"
    elif vote.is_upvote == is_upvote:
        db.session.delete(vote)
        result = None
    else:
        vote.is_upvote = is_upvote
        result = vote.direction
    db.session.commit()
    return {"user_vote": result}


@protocol_bp.route("/<int:protocol_id>/comments/<int:comment_id>", methods=["DELETE"])
@login_required
def delete_comment(protocol_id: int, comment_id: int):
    comment = Comment.query.filter_by(id=comment_id, protocol_id=protocol_id).first()
    if comment is None:
        abort(404, description="Comment not found")
    if comment.author_id != current_user.id:
        abort(403, description="Forbidden")
    db.session.delete(comment)
    db.session.commit()
    return {"message": "Deleted"}, 200
