from app.client.backend import Backend
from app.client.errors import (
    BookmarkError,
    StoreError,
    SubscriptionError,
    ValidationError,
)
from app.client.models import Bookmark, ChangeEvent, Session, Snapshot
from app.client.reconciler import BookmarkList
from app.client.session import SessionStore
from app.client.store import BookmarkStore, ChangeFeed
from app.client.subscriptions import Subscription

__all__ = [
    "Backend",
    "Bookmark",
    "BookmarkError",
    "BookmarkList",
    "BookmarkStore",
    "ChangeEvent",
    "ChangeFeed",
    "Session",
    "SessionStore",
    "Snapshot",
    "StoreError",
    "Subscription",
    "SubscriptionError",
    "ValidationError",
]
