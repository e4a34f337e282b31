from __future__ import annotations

import inspect
from collections.abc import Callable


class Subscription:
    """Handle returned by every listener registration; ``unsubscribe`` is idempotent."""

    def __init__(self, release: Callable[[], None] | None = None):
        self._release = release
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        release, self._release = self._release, None
        if release is not None:
            release()


async def call_listener(callback, *args) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
