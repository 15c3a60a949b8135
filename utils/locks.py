# utils/locks.py
import asyncio
from contextlib import asynccontextmanager
from collections import defaultdict


class KeyedLocks:
    """One asyncio.Lock per key, created lazily and dropped once idle."""

    def __init__(self):
        self._locks: dict = {}
        self._waiters: defaultdict = defaultdict(int)

    @asynccontextmanager
    async def hold(self, key):
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._waiters[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    def locked(self, key) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())

    def __len__(self):
        return len(self._locks)
