from datetime import timedelta
from functools import wraps

from flask import current_app, g, jsonify, request

from app.extensions import db
from app.models import ApiToken, User, as_utc, utcnow


SIGN_IN_PROVIDERS = {"password"}


def bearer_token_from_request() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    return token or None


def _token_row_from_request():
    token = bearer_token_from_request()
    if not token:
        return None
    token_row = ApiToken.query.filter_by(token_hash=ApiToken.hash_token(token)).first()
    if not token_row or not token_row.is_usable():
        return None
    if not token_row.user or not token_row.user.is_active:
        return None
    token_row.last_used_at = utcnow()
    db.session.commit()
    return token_row


def issue_session_token(
    user: User, provider: str = "password", name: str | None = None
):
    token, token_hash = ApiToken.issue_token()
    ttl_hours = current_app.config["TOKEN_TTL_HOURS"]
    row = ApiToken(
        user_id=user.id,
        name=name or "Smart Bookmarks session",
        provider=provider,
        token_hash=token_hash,
        expires_at=utcnow() + timedelta(hours=ttl_hours) if ttl_hours > 0 else None,
    )
    db.session.add(row)
    db.session.commit()
    return token, row


def session_payload(token_row: ApiToken) -> dict:
    expires_at = as_utc(token_row.expires_at)
    return {
        "user": token_row.user.as_session_user(),
        "provider": token_row.provider,
        "expires_at": expires_at.isoformat() if expires_at else None,
    }


def api_auth_required(func):
    @wraps(func)
    def wrapped(*args, **kwargs):
        token_row = _token_row_from_request()
        if not token_row:
            return jsonify({"error": "authentication required"}), 401
        g.api_token = token_row
        g.api_user = token_row.user
        return func(*args, **kwargs)

    return wrapped
