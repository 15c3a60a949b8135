# bot/keyboards/main.py
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton


def main_menu(has_wallet: bool):
    kb = [[InlineKeyboardButton(text="👛 Wallet", callback_data="menu:wallet")]]
    if has_wallet:
        kb.append([
            InlineKeyboardButton(text="🟢 Buy", callback_data="trade:buy"),
            InlineKeyboardButton(text="🔴 Sell", callback_data="trade:sell"),
        ])
        kb.append([InlineKeyboardButton(text="📜 History", callback_data="menu:history")])
    kb.append([InlineKeyboardButton(text="📈 Token Price", callback_data="menu:price")])
    kb.append([InlineKeyboardButton(text="⚙️ Settings", callback_data="menu:settings")])
    return InlineKeyboardMarkup(inline_keyboard=kb)


def back_button():
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="⬅ Back", callback_data="menu:main")]
    ])
