from __future__ import annotations

from flask import current_app, g, jsonify, request

from app.api import api_bp
from app.extensions import db
from app.models import User, utcnow
from app.services.bookmarks import (
    EDITABLE_FIELDS,
    BookmarkInputError,
    create_bookmark,
    delete_bookmark,
    get_user_bookmark,
    list_bookmarks,
    update_bookmark,
)
from app.services.changes import events_since, latest_cursor
from app.services.common import clean_text
from app.services.security import (
    SIGN_IN_PROVIDERS,
    api_auth_required,
    issue_session_token,
    session_payload,
)


def _json_payload() -> dict:
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def _owner_filter_mismatch(user: User) -> bool:
    # Rows of other owners are invisible rather than forbidden.
    requested = request.args.get("user_id", type=int)
    return requested is not None and requested != user.id


def _get_user_bookmark_or_404(user_id: int, bookmark_id: int):
    bookmark = get_user_bookmark(user_id, bookmark_id)
    if not bookmark:
        return None, (jsonify({"error": "bookmark not found"}), 404)
    return bookmark, None


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "Smart Bookmarks"})


@api_bp.route("/auth/signup", methods=["POST"])
def signup():
    payload = _json_payload()
    username = clean_text(payload.get("username"))
    password = payload.get("password") or ""
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"error": "username already exists"}), 409

    user = User(
        username=username,
        display_name=clean_text(payload.get("display_name")) or None,
        email=clean_text(payload.get("email")) or None,
        is_active=True,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return jsonify({"status": "created", "user_id": user.id}), 201


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = _json_payload()
    provider = clean_text(payload.get("provider")).lower() or "password"
    if provider not in SIGN_IN_PROVIDERS:
        return jsonify({"error": f"unsupported sign-in provider: {provider}"}), 400

    username = clean_text(payload.get("username"))
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, row = issue_session_token(
        user, provider=provider, name=clean_text(payload.get("token_name")) or None
    )
    current_app.logger.info("Issued session token for user %s", user.id)
    return jsonify({"token": token, "session": session_payload(row)})


@api_bp.route("/auth/session", methods=["GET"])
@api_auth_required
def current_session():
    return jsonify({"session": session_payload(g.api_token)})


@api_bp.route("/auth/logout", methods=["POST"])
@api_auth_required
def logout():
    g.api_token.revoked_at = utcnow()
    db.session.commit()
    return jsonify({"status": "signed_out"})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list_api():
    user = g.api_user
    order = (request.args.get("order") or "desc").lower()
    if order not in {"asc", "desc"}:
        return jsonify({"error": "order must be asc or desc"}), 400

    cursor = latest_cursor(user.id)
    if _owner_filter_mismatch(user):
        items = []
    else:
        items = list_bookmarks(user.id, descending=order == "desc")
    return jsonify({"items": [item.as_dict() for item in items], "cursor": cursor})


@api_bp.route("/bookmarks", methods=["POST"])
@api_auth_required
def bookmarks_create_api():
    user = g.api_user
    payload = _json_payload()
    owner_id = payload.get("user_id")
    if owner_id is not None and owner_id != user.id:
        return jsonify({"error": "bookmark owner must be the signed-in user"}), 403
    try:
        bookmark = create_bookmark(user.id, payload.get("title"), payload.get("url"))
    except BookmarkInputError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify(bookmark.as_dict()), 201


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["GET"])
@api_auth_required
def bookmarks_get_api(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error
    return jsonify(bookmark.as_dict())


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["PATCH"])
@api_auth_required
def bookmarks_update_api(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error

    payload = _json_payload()
    fields = {key: payload[key] for key in payload if key in EDITABLE_FIELDS}
    if not fields:
        return jsonify({"error": "nothing to update"}), 400
    try:
        update_bookmark(bookmark, fields)
    except BookmarkInputError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400
    return jsonify({"status": "updated", "id": bookmark.id})


@api_bp.route("/bookmarks/<int:bookmark_id>", methods=["DELETE"])
@api_auth_required
def bookmarks_delete_api(bookmark_id: int):
    bookmark, error = _get_user_bookmark_or_404(g.api_user.id, bookmark_id)
    if error:
        return error
    delete_bookmark(bookmark)
    return jsonify({"status": "deleted", "id": bookmark_id})


@api_bp.route("/changes", methods=["GET"])
@api_auth_required
def changes_feed_api():
    user = g.api_user
    since = request.args.get("since", default=0, type=int)
    max_limit = current_app.config["CHANGES_PAGE_LIMIT"]
    limit = request.args.get("limit", default=max_limit, type=int)
    limit = max(1, min(limit, max_limit))

    if _owner_filter_mismatch(user):
        return jsonify({"events": [], "cursor": since, "has_more": False})

    events = events_since(user.id, since, limit)
    cursor = events[-1].id if events else since
    return jsonify(
        {
            "events": [event.as_dict() for event in events],
            "cursor": cursor,
            "has_more": len(events) == limit,
        }
    )


@api_bp.route("/changes/head", methods=["GET"])
@api_auth_required
def changes_head_api():
    user = g.api_user
    cursor = 0 if _owner_filter_mismatch(user) else latest_cursor(user.id)
    return jsonify({"cursor": cursor})
