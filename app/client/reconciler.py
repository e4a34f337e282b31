from __future__ import annotations

import logging

from app.client.errors import BookmarkError, StoreError, ValidationError
from app.client.models import Bookmark, ChangeEvent, Session
from app.client.session import SessionStore
from app.client.subscriptions import Subscription
from app.services.common import (
    CHANGE_DELETE,
    CHANGE_INSERT,
    CHANGE_UPDATE,
    clean_text,
    missing_fields,
)


logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Title and URL are required"


class BookmarkList:
    """In-memory bookmark list for the signed-in user.

    The list merges three sources: the initial fetch, the store's change feed
    and the results of this client's own writes. Writes are applied locally only
    after the store confirms them, and feed events are applied idempotently, so
    both paths converge whichever arrives first.

    Every session change bumps ``generation``; fetches, writes and feed events
    started under an older generation are dropped when they complete.

    Failures never propagate out of the public operations. They are kept in
    ``error`` until dismissed or replaced by the next operation.
    """

    def __init__(self, store, sessions: SessionStore | None = None):
        self._store = store
        self._sessions = sessions
        self._bookmarks: list[Bookmark] = []
        self._session: Session | None = None
        self._feed: Subscription | None = None
        self._session_subscription: Subscription | None = None
        self._generation = 0
        self.error: BookmarkError | None = None
        self.loading = False
        self.editing_id = None
        self._pending_saves = 0

    @property
    def bookmarks(self) -> list[Bookmark]:
        return list(self._bookmarks)

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def subscribed(self) -> bool:
        return self._feed is not None and self._feed.active

    @property
    def saving(self) -> bool:
        return self._pending_saves > 0

    @property
    def error_message(self) -> str | None:
        return self.error.message if self.error else None

    def __len__(self) -> int:
        return len(self._bookmarks)

    def get(self, bookmark_id) -> Bookmark | None:
        for bookmark in self._bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    async def attach(self) -> None:
        if self._sessions is None:
            raise RuntimeError("BookmarkList was created without a session store")
        if self._session_subscription is None:
            self._session_subscription = self._sessions.on_session_change(
                self.initialize
            )
        await self.initialize(self._sessions.get_current_session())

    async def __aenter__(self) -> "BookmarkList":
        await self.attach()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.teardown()

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _close_feed(self) -> None:
        feed, self._feed = self._feed, None
        if feed is None:
            return
        feed.unsubscribe()
        wait_closed = getattr(feed, "wait_closed", None)
        if wait_closed is not None:
            await wait_closed()

    def _report(self, exc: BookmarkError, action: str) -> None:
        self.error = exc
        if isinstance(exc, StoreError):
            logger.warning("Bookmark %s failed: %s", action, exc.message)
        else:
            logger.debug("Bookmark %s rejected: %s", action, exc.message)

    async def initialize(self, session: Session | None) -> None:
        self._generation += 1
        generation = self._generation
        self._session = session
        self._bookmarks = []
        self.editing_id = None
        self.error = None
        self.loading = False
        self._pending_saves = 0
        await self._close_feed()
        if session is None or not self._is_current(generation):
            return

        self.loading = True
        since = None
        try:
            snapshot = await self._store.query(session.user_id, descending=True)
        except StoreError as exc:
            if not self._is_current(generation):
                return
            self.loading = False
            self._report(exc, "fetch")
        else:
            if not self._is_current(generation):
                logger.debug("Discarding bookmark fetch from generation %s", generation)
                return
            self.loading = False
            self._bookmarks = list(snapshot.items)
            since = snapshot.cursor

        self._feed = self._store.subscribe(
            session.user_id,
            lambda event: self._on_change(generation, event),
            since=since,
        )

    def _on_change(self, generation: int, event: ChangeEvent) -> None:
        if not self._is_current(generation):
            return
        self.apply(event)

    def apply(self, event: ChangeEvent) -> bool:
        record = event.record
        if event.kind == CHANGE_INSERT:
            if self.get(record.id) is not None:
                return False
            self._bookmarks.insert(0, record)
            return True

        if event.kind == CHANGE_DELETE:
            remaining = [b for b in self._bookmarks if b.id != record.id]
            changed = len(remaining) != len(self._bookmarks)
            self._bookmarks = remaining
            if changed and self.editing_id == record.id:
                self.editing_id = None
            return changed

        if event.kind == CHANGE_UPDATE:
            for index, bookmark in enumerate(self._bookmarks):
                if bookmark.id == record.id:
                    self._bookmarks[index] = record
                    return True
            return False

        logger.warning("Ignoring change event of unknown kind %r", event.kind)
        return False

    def _validate(self, title, url) -> ValidationError | None:
        missing = missing_fields(title=title, url=url)
        if missing:
            return ValidationError(REQUIRED_FIELDS_MESSAGE, fields=missing)
        return None

    def _require_session(self, action: str) -> Session | None:
        if self._session is None:
            self._report(StoreError("authentication required", status_code=401), action)
        return self._session

    async def add_bookmark(self, title, url) -> Bookmark | None:
        self.error = None
        invalid = self._validate(title, url)
        if invalid:
            self._report(invalid, "add")
            return None
        session = self._require_session("add")
        if session is None:
            return None

        generation = self._generation
        self._pending_saves += 1
        try:
            record = await self._store.insert(
                clean_text(title), clean_text(url), session.user_id
            )
        except StoreError as exc:
            if self._is_current(generation):
                self._pending_saves -= 1
                self._report(exc, "add")
            return None

        if not self._is_current(generation):
            return None
        self._pending_saves -= 1
        self.apply(ChangeEvent(kind=CHANGE_INSERT, record=record))
        return record

    def begin_edit(self, bookmark_id) -> bool:
        if self.get(bookmark_id) is None:
            return False
        self.editing_id = bookmark_id
        return True

    def cancel_edit(self) -> None:
        self.editing_id = None

    async def edit_bookmark(self, bookmark_id, title, url) -> bool:
        self.error = None
        invalid = self._validate(title, url)
        if invalid:
            self._report(invalid, "edit")
            return False
        if self._require_session("edit") is None:
            return False

        title, url = clean_text(title), clean_text(url)
        generation = self._generation
        self._pending_saves += 1
        try:
            await self._store.update(bookmark_id, {"title": title, "url": url})
        except StoreError as exc:
            if self._is_current(generation):
                self._pending_saves -= 1
                self._report(exc, "edit")
            return False

        if not self._is_current(generation):
            return False
        self._pending_saves -= 1
        for index, bookmark in enumerate(self._bookmarks):
            if bookmark.id == bookmark_id:
                self._bookmarks[index] = bookmark.with_fields(title=title, url=url)
                break
        if self.editing_id == bookmark_id:
            self.editing_id = None
        return True

    async def delete_bookmark(self, bookmark_id) -> bool:
        self.error = None
        if self._require_session("delete") is None:
            return False

        generation = self._generation
        try:
            await self._store.delete(bookmark_id)
        except StoreError as exc:
            if self._is_current(generation):
                self._report(exc, "delete")
            return False

        if not self._is_current(generation):
            return False
        self._bookmarks = [b for b in self._bookmarks if b.id != bookmark_id]
        if self.editing_id == bookmark_id:
            self.editing_id = None
        return True

    def dismiss_error(self) -> None:
        self.error = None

    async def teardown(self) -> None:
        subscription, self._session_subscription = self._session_subscription, None
        if subscription is not None:
            subscription.unsubscribe()
        self._generation += 1
        self._session = None
        self._bookmarks = []
        self.editing_id = None
        self.error = None
        self.loading = False
        self._pending_saves = 0
        await self._close_feed()
