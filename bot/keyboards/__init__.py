from bot.keyboards.main import back_button, main_menu
from bot.keyboards.settings import settings_menu
from bot.keyboards.trades import confirm_menu, sell_menu, token_menu
from bot.keyboards.wallets import wallet_menu

__all__ = ["back_button", "confirm_menu", "main_menu", "sell_menu", "settings_menu", "token_menu", "wallet_menu"]
