# middlewares/user.py
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject


class LedgerUserMiddleware(BaseMiddleware):
    """Registers the sender on first contact and passes the ledger ``user`` to handlers."""

    async def __call__(self, handler, event: TelegramObject, data):
        orchestrator = data.get("orchestrator")
        tg_user = getattr(event, "from_user", None)
        if orchestrator is not None and tg_user is not None:
            data["user"] = await orchestrator.register_user(
                tg_user.id,
                username=tg_user.username,
                first_name=tg_user.first_name,
                last_name=tg_user.last_name,
            )
        return await handler(event, data)
