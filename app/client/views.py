from __future__ import annotations

from datetime import datetime

from app.client.models import Bookmark
from app.services.common import url_hostname


def display_title(bookmark: Bookmark) -> str:
    return bookmark.title or bookmark.url


def sidebar_title(bookmark: Bookmark) -> str:
    return bookmark.title or "Untitled"


def hostname(url: str) -> str:
    return url_hostname(url)


def filter_bookmarks(bookmarks, query: str | None) -> list[Bookmark]:
    needle = (query or "").lower()
    return [b for b in bookmarks if needle in display_title(b).lower()]


def count_label(count: int, total: int | None = None) -> str:
    if total is not None:
        return f"{count}/{total} bookmarks"
    return f"{count} bookmark{'' if count == 1 else 's'}"


def format_inserted_at(value: datetime | None) -> str:
    if value is None:
        return ""
    local = value.astimezone() if value.tzinfo else value
    return f"{local.strftime('%Y-%m-%d')} at {local.strftime('%H:%M')}"
