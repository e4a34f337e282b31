from __future__ import annotations

from datetime import timedelta

from app.extensions import db
from app.models import Bookmark, ChangeEvent, utcnow
from app.services.common import (  # noqa: F401
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_KINDS,
    CHANGE_UPDATE,
)


def serialize_bookmark_for_feed(bookmark: Bookmark) -> dict:
    return bookmark.as_dict()


def log_change_event(user_id: int, kind: str, bookmark: Bookmark) -> ChangeEvent:
    if kind not in CHANGE_KINDS:
        raise ValueError(f"unknown change kind: {kind}")
    event = ChangeEvent(
        user_id=user_id,
        bookmark_id=bookmark.id,
        kind=kind,
        payload=serialize_bookmark_for_feed(bookmark),
    )
    db.session.add(event)
    return event


def latest_cursor(user_id: int) -> int:
    latest = (
        db.session.query(db.func.max(ChangeEvent.id))
        .filter_by(user_id=user_id)
        .scalar()
    )
    return latest or 0


def events_since(user_id: int, since: int, limit: int) -> list[ChangeEvent]:
    return (
        ChangeEvent.query.filter_by(user_id=user_id)
        .filter(ChangeEvent.id > since)
        .order_by(ChangeEvent.id.asc())
        .limit(limit)
        .all()
    )


def prune_change_events(retention_days: int) -> int:
    cutoff = utcnow() - timedelta(days=retention_days)
    removed = ChangeEvent.query.filter(ChangeEvent.created_at < cutoff).delete(
        synchronize_session=False
    )
    db.session.commit()
    return removed
