from __future__ import annotations

import httpx

from app.client.session import SessionStore
from app.client.store import BookmarkStore
from app.config import ClientConfig


DEFAULT_HEADERS = {
    "User-Agent": "SmartBookmarksClient/1.0",
    "Accept": "application/json",
}


class Backend:
    """One HTTP client shared by the session and bookmark stores.

    Construct it once at start-up, hand ``sessions`` and ``bookmarks`` to the
    components that need them, and close it on shutdown.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        feed_interval: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=DEFAULT_HEADERS,
            transport=transport,
        )
        self.sessions = SessionStore(self.http)
        self.bookmarks = BookmarkStore(
            self.http, self.sessions, feed_interval=feed_interval
        )

    @classmethod
    def from_config(cls, config=ClientConfig, **kwargs) -> "Backend":
        return cls(
            config.API_URL,
            timeout=config.REQUEST_TIMEOUT,
            feed_interval=config.FEED_INTERVAL,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
