from __future__ import annotations


class BookmarkError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookmarkError):
    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = list(fields or [])


class StoreError(BookmarkError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_auth_failure(self) -> bool:
        return self.status_code == 401


class SubscriptionError(BookmarkError):
    pass
