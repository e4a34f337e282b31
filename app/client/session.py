from __future__ import annotations

import logging

import httpx

from app.client.errors import StoreError, ValidationError
from app.client.models import Session
from app.client.subscriptions import Subscription, call_listener
from app.client.transport import api_request


logger = logging.getLogger(__name__)


class SessionStore:
    """Tracks the signed-in session and tells listeners when it changes.

    Listeners receive the new ``Session`` or ``None`` and may be plain
    callables or coroutine functions.
    """

    def __init__(self, http: httpx.AsyncClient):
        self._http = http
        self._session: Session | None = None
        self._listeners: list = []

    def get_current_session(self) -> Session | None:
        return self._session

    def on_session_change(self, callback) -> Subscription:
        self._listeners.append(callback)

        def release():
            if callback in self._listeners:
                self._listeners.remove(callback)

        return Subscription(release)

    async def sign_in(self, provider: str = "password", **credentials) -> Session:
        username = (credentials.get("username") or "").strip()
        password = credentials.get("password") or ""
        if not username or not password:
            raise ValidationError(
                "Username and password are required", fields=["username", "password"]
            )

        payload = await api_request(
            self._http,
            "POST",
            "/auth/token",
            json={"provider": provider, "username": username, "password": password},
        )
        session = Session.from_payload(payload["session"], payload["token"])
        await self._set_session(session)
        return session

    async def restore(self, access_token: str) -> Session | None:
        try:
            payload = await api_request(
                self._http, "GET", "/auth/session", token=access_token
            )
        except StoreError as exc:
            if not exc.is_auth_failure:
                raise
            await self._set_session(None)
            return None

        session = Session.from_payload(payload["session"], access_token)
        await self._set_session(session)
        return session

    async def sign_out(self) -> None:
        session = self._session
        if session is None:
            return
        try:
            await api_request(
                self._http, "POST", "/auth/logout", token=session.access_token
            )
        except StoreError as exc:
            logger.warning(
                "Sign-out request failed for user %s: %s", session.user_id, exc
            )
        await self._set_session(None)

    async def expire(self) -> None:
        if self._session is not None:
            logger.info("Session for user %s expired", self._session.user_id)
        await self._set_session(None)

    async def _set_session(self, session: Session | None) -> None:
        if session == self._session:
            return
        self._session = session
        for callback in list(self._listeners):
            await call_listener(callback, session)
