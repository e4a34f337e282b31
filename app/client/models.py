from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from dateutil import parser as dt_parser


def _parse_time(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        parsed = dt_parser.isoparse(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Bookmark:
    id: int
    url: str
    title: str | None = None
    owner_id: int | None = None
    inserted_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Bookmark":
        return cls(
            id=payload["id"],
            url=payload.get("url") or "",
            title=payload.get("title"),
            owner_id=payload.get("user_id"),
            inserted_at=_parse_time(payload.get("inserted_at")),
        )

    def with_fields(self, title: str, url: str) -> "Bookmark":
        return replace(self, title=title, url=url)


@dataclass(frozen=True)
class Session:
    user_id: int
    access_token: str = field(repr=False)
    full_name: str | None = None
    email: str | None = None
    username: str | None = None
    provider: str = "password"
    expires_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict, access_token: str) -> "Session":
        user = payload.get("user") or {}
        return cls(
            user_id=user["id"],
            access_token=access_token,
            full_name=user.get("full_name"),
            email=user.get("email"),
            username=user.get("username"),
            provider=payload.get("provider") or "password",
            expires_at=_parse_time(payload.get("expires_at")),
        )

    @property
    def display_name(self) -> str:
        return self.full_name or self.email or "User"

    @property
    def initials(self) -> str:
        return self.display_name[:1].upper()


@dataclass(frozen=True)
class ChangeEvent:
    kind: str
    record: Bookmark
    cursor: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ChangeEvent":
        cursor = payload.get("cursor")
        return cls(
            kind=payload["kind"],
            record=Bookmark.from_payload(payload.get("record") or {}),
            cursor=int(cursor) if cursor is not None else None,
        )


@dataclass(frozen=True)
class Snapshot:
    items: list[Bookmark]
    cursor: int | None = None
