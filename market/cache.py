# market/cache.py
import time
from typing import Any, Callable, Hashable, Optional


class TTLCache:
    """Dict with per-entry expiry; an entry is fresh while its age is below ``ttl``."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, stored_at = entry
        if self.clock() - stored_at < self.ttl:
            return value

        self._entries.pop(key, None)
        return None

    def set(self, key: Hashable, value: Any):
        self._entries[key] = (value, self.clock())

    def clear(self):
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self):
        return len(self._entries)
