# bot/bot.py
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from bot.handlers import router
from middlewares import LedgerUserMiddleware, WhitelistMiddleware

dp = Dispatcher()

for observer in (dp.message, dp.callback_query):
    observer.middleware(WhitelistMiddleware())
    observer.middleware(LedgerUserMiddleware())

dp.include_router(router)


def make_bot(token: str) -> Bot:
    return Bot(token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
