# trading/locks.py
from contextlib import asynccontextmanager

from loguru import logger

from utils.locks import KeyedLocks


class UserLocks(KeyedLocks):
    """Serializes trade execution per user; different users never wait on each other."""

    @asynccontextmanager
    async def hold(self, user_id):
        if self.locked(user_id):
            logger.info(f"Trade for user {user_id} waiting for a running trade to finish")
        async with super().hold(user_id):
            yield
