# middlewares/whitelist.py
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from loguru import logger

from config import config


class WhitelistMiddleware(BaseMiddleware):
    """Drops updates from users outside WHITELISTED_USER_IDS; an empty list lets everyone in."""

    def __init__(self, allowed_ids=None):
        self.allowed_ids = set(config.whitelisted_user_ids if allowed_ids is None else allowed_ids)

    async def __call__(self, handler, event: TelegramObject, data):
        user = getattr(event, "from_user", None)
        if not user:
            return
        if self.allowed_ids and user.id not in self.allowed_ids:
            logger.debug(f"Ignoring update from non-whitelisted user {user.id}")
            return
        return await handler(event, data)
