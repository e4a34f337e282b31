from __future__ import annotations

import asyncio
import logging

import httpx

from app.client.errors import BookmarkError, StoreError, SubscriptionError
from app.client.models import Bookmark, ChangeEvent, Snapshot
from app.client.session import SessionStore
from app.client.subscriptions import Subscription, call_listener
from app.client.transport import api_request


logger = logging.getLogger(__name__)


def _parse_cursor(value, default) -> int:
    try:
        return int(value or default)
    except (TypeError, ValueError) as exc:
        raise SubscriptionError(f"malformed change cursor: {value!r}") from exc


class BookmarkStore:
    def __init__(
        self,
        http: httpx.AsyncClient,
        sessions: SessionStore,
        feed_interval: float = 1.0,
    ):
        self._http = http
        self._sessions = sessions
        self.feed_interval = feed_interval

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        session = self._sessions.get_current_session()
        if session is None:
            raise StoreError("authentication required", status_code=401)
        try:
            return await api_request(
                self._http, method, path, token=session.access_token, **kwargs
            )
        except StoreError as exc:
            if exc.is_auth_failure and self._sessions.get_current_session() is session:
                await self._sessions.expire()
            raise

    async def query(self, owner_id: int, descending: bool = True) -> Snapshot:
        payload = await self._request(
            "GET",
            "/bookmarks",
            params={"user_id": owner_id, "order": "desc" if descending else "asc"},
        )
        items = [Bookmark.from_payload(row) for row in payload.get("items") or []]
        return Snapshot(items=items, cursor=payload.get("cursor"))

    async def insert(self, title: str, url: str, owner_id: int) -> Bookmark:
        payload = await self._request(
            "POST",
            "/bookmarks",
            json={"title": title, "url": url, "user_id": owner_id},
        )
        return Bookmark.from_payload(payload)

    async def update(self, bookmark_id: int, fields: dict) -> None:
        await self._request("PATCH", f"/bookmarks/{bookmark_id}", json=fields)

    async def delete(self, bookmark_id: int) -> None:
        await self._request("DELETE", f"/bookmarks/{bookmark_id}")

    async def change_head(self, owner_id: int) -> int:
        payload = await self._request(
            "GET", "/changes/head", params={"user_id": owner_id}
        )
        return _parse_cursor(payload.get("cursor"), 0)

    async def fetch_changes(
        self, owner_id: int, since: int, limit: int | None = None
    ) -> tuple[list[ChangeEvent], int, bool]:
        params = {"user_id": owner_id, "since": since}
        if limit:
            params["limit"] = limit
        payload = await self._request("GET", "/changes", params=params)
        events = []
        for row in payload.get("events") or []:
            try:
                events.append(ChangeEvent.from_payload(row))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed change event for owner %s: %r", owner_id, exc
                )
        cursor = _parse_cursor(payload.get("cursor"), since)
        return events, cursor, bool(payload.get("has_more"))

    def subscribe(
        self, owner_id: int, handler, since: int | None = None
    ) -> "ChangeFeed":
        feed = ChangeFeed(
            self, owner_id, handler, since=since, interval=self.feed_interval
        )
        feed.start()
        return feed


class ChangeFeed(Subscription):
    """Polls the change log for one owner and hands each event to ``handler``.

    Poll failures are logged and retried on the next tick, and malformed events
    are logged and skipped; the feed only stops when unsubscribed.
    """

    def __init__(
        self,
        store: BookmarkStore,
        owner_id: int,
        handler,
        since: int | None = None,
        interval: float = 1.0,
    ):
        super().__init__(self._cancel)
        self._store = store
        self._handler = handler
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Task | None = None
        self.owner_id = owner_id
        self.cursor = since
        self.interval = interval
        self.last_error: SubscriptionError | None = None

    def start(self) -> None:
        if self._task is None and self.active:
            self._task = asyncio.get_running_loop().create_task(
                self._run(), name=f"bookmark-feed-{self.owner_id}"
            )
            logger.debug("Change feed opened for owner %s", self.owner_id)

    def _cancel(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        self._stopping = task
        logger.debug("Change feed closed for owner %s", self.owner_id)

    async def wait_closed(self) -> None:
        task, self._stopping = self._stopping, None
        if task is None or task is asyncio.current_task():
            return
        await asyncio.gather(task, return_exceptions=True)

    async def _poll_once(self) -> bool:
        if self.cursor is None:
            self.cursor = await self._store.change_head(self.owner_id)
        events, cursor, has_more = await self._store.fetch_changes(
            self.owner_id, self.cursor
        )
        for event in events:
            if not self.active:
                return False
            if event.cursor is not None:
                self.cursor = event.cursor
            try:
                await call_listener(self._handler, event)
            except Exception:
                logger.exception(
                    "Change handler failed for owner %s at cursor %s",
                    self.owner_id,
                    event.cursor,
                )
        self.cursor = max(self.cursor or 0, cursor)
        return has_more

    async def _run(self) -> None:
        while self.active:
            try:
                has_more = await self._poll_once()
                self.last_error = None
            except BookmarkError as exc:
                self.last_error = SubscriptionError(exc.message)
                logger.warning(
                    "Change feed poll failed for owner %s: %s", self.owner_id, exc
                )
                has_more = False
            if not has_more:
                await asyncio.sleep(self.interval)
