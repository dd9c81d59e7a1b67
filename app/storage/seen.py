from __future__ import annotations

from cachetools import TTLCache


class SeenUpdates:
    """Remembers recent Telegram update ids; the webhook may be redelivered."""

    def __init__(self, *, maxsize: int = 10000, ttl: float = 600) -> None:
        self._ids: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)

    def check_and_mark(self, update_id: int) -> bool:
        """Return True the first time ``update_id`` is seen."""
        if update_id in self._ids:
            return False
        self._ids[update_id] = True
        return True
