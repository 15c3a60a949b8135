from bot.bot import dp, make_bot

__all__ = ["dp", "make_bot"]
