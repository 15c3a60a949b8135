# bot/keyboards/trades.py
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

SELL_PERCENTAGES = (25, 50, 100)


def confirm_menu(request_id: str):
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✅ Confirm", callback_data=f"confirm:{request_id}"),
        InlineKeyboardButton(text="❌ Cancel", callback_data=f"cancel:{request_id}"),
    ]])


def sell_menu(balances):
    kb = []

    for balance in balances:
        symbol = balance.token_symbol or balance.token_address[:6]
        kb.append([
            InlineKeyboardButton(
                text=f"{symbol} {pct}%",
                callback_data=f"sell:{balance.token_address}:{pct}"
            )
            for pct in SELL_PERCENTAGES
        ])

    kb.append([
        InlineKeyboardButton(text="⬅ Back", callback_data="menu:main")
    ])

    return InlineKeyboardMarkup(inline_keyboard=kb)


def token_menu(token_address: str):
    return InlineKeyboardMarkup(inline_keyboard=[
        [InlineKeyboardButton(text="🟢 Buy", callback_data=f"buy:{token_address}")],
        [
            InlineKeyboardButton(text=f"🔴 Sell {pct}%", callback_data=f"sell:{token_address}:{pct}")
            for pct in SELL_PERCENTAGES
        ],
        [InlineKeyboardButton(text="⬅ Back", callback_data="menu:main")],
    ])
