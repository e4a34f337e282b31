from __future__ import annotations

from app.extensions import db
from app.models import Bookmark
from app.services.changes import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    log_change_event,
)
from app.services.common import clean_text


EDITABLE_FIELDS = ("title", "url")


class BookmarkInputError(ValueError):
    pass


def list_bookmarks(user_id: int, descending: bool = True) -> list[Bookmark]:
    order = Bookmark.inserted_at.desc() if descending else Bookmark.inserted_at.asc()
    secondary = Bookmark.id.desc() if descending else Bookmark.id.asc()
    return Bookmark.query.filter_by(user_id=user_id).order_by(order, secondary).all()


def get_user_bookmark(user_id: int, bookmark_id: int) -> Bookmark | None:
    return Bookmark.query.filter_by(id=bookmark_id, user_id=user_id).first()


def create_bookmark(user_id: int, title, url) -> Bookmark:
    url = clean_text(url)
    if not url:
        raise BookmarkInputError("url is required")

    bookmark = Bookmark(user_id=user_id, title=clean_text(title) or None, url=url)
    db.session.add(bookmark)
    db.session.flush()
    log_change_event(user_id, CHANGE_INSERT, bookmark)
    db.session.commit()
    return bookmark


def update_bookmark(bookmark: Bookmark, fields: dict) -> Bookmark:
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise BookmarkInputError(f"unsupported fields: {', '.join(unknown)}")

    if "url" in fields:
        url = clean_text(fields.get("url"))
        if not url:
            raise BookmarkInputError("url cannot be empty")
        bookmark.url = url
    if "title" in fields:
        bookmark.title = clean_text(fields.get("title")) or None

    log_change_event(bookmark.user_id, CHANGE_UPDATE, bookmark)
    db.session.commit()
    return bookmark


def delete_bookmark(bookmark: Bookmark) -> None:
    log_change_event(bookmark.user_id, CHANGE_DELETE, bookmark)
    db.session.delete(bookmark)
    db.session.commit()
